"""Layout constants shared by the orchestrator, label resolver and lane optimizer.

All distances are in diagram pixels (top-left origin).
"""

from typing import Dict, Tuple

# =============================================================================
# Element sizes
# =============================================================================

TASK_SIZE: Tuple[float, float] = (100, 80)
EVENT_SIZE: Tuple[float, float] = (36, 36)
GATEWAY_SIZE: Tuple[float, float] = (50, 50)
DATA_SIZE: Tuple[float, float] = (50, 50)
SUBPROCESS_SIZE: Tuple[float, float] = (350, 200)
PARTICIPANT_SIZE: Tuple[float, float] = (600, 250)

# =============================================================================
# Spacing
# =============================================================================

STANDARD_GAP = 50
NODE_SPACING = 50
LAYER_SPACING = 60

# Origin of a whole-diagram layout
ORIGIN_X = 180
ORIGIN_Y = 80

# Padding between a container's border and its laid-out content
CONTAINER_PADDING_X = 40
CONTAINER_PADDING_Y = 60

# Vertical gap between stacked participants
POOL_GAP = 50

# Pools and lanes
POOL_LABEL_BAND = 30
LANE_VERTICAL_PADDING = 30
MIN_LANE_HEIGHT = 125
MIN_POOL_WIDTH = 600

# =============================================================================
# Deterministic linear-chain layout
# =============================================================================

DETERMINISTIC_ORIGIN_X = 180
DETERMINISTIC_CENTER_Y = 240
DETERMINISTIC_LAYER_GAP = STANDARD_GAP + 60
DETERMINISTIC_MAX_NODES = 12

# =============================================================================
# Labels
# =============================================================================

ELEMENT_LABEL_DISTANCE = 10
ELEMENT_LABEL_BOTTOM_EXTRA = 5
FLOW_LABEL_INDENT = 15
DEFAULT_LABEL_WIDTH = 90
DEFAULT_LABEL_HEIGHT = 20

# Penalty weights. Host overlap must dominate a single crossing.
CROSSING_PENALTY = 1
LABEL_OVERLAP_PENALTY = 2
HOST_OVERLAP_PENALTY = 10
OFF_CANVAS_PENALTY = 100
SHAPE_OVERLAP_PENALTY = 5
SHAPE_PROXIMITY_PENALTY = 1
LABEL_SHAPE_PROXIMITY_MARGIN = 10
# Added on top of CROSSING_PENALTY for segments of the label owner's own flows
OWN_FLOW_CROSSING_PENALTY = 2

# Tie-break order: lower rank wins
LABEL_ORIENTATION_PRIORITY: Dict[str, int] = {
    "bottom": 0,
    "right": 1,
    "left": 2,
    "top": 3,
}

# =============================================================================
# Artifacts
# =============================================================================

# Gap between a node and the annotation above it / data reference below it
ARTIFACT_ABOVE_OFFSET = 80
ARTIFACT_BELOW_OFFSET = 80
ARTIFACT_PADDING = 20
# How far past the flow's right edge an artifact may shift to avoid another
ARTIFACT_SEARCH_WIDTH = 200
ARTIFACT_MOVE_THRESHOLD = 0.5

# =============================================================================
# Overlap resolution
# =============================================================================

MIN_OVERLAP_GAP = 30
MAX_OVERLAP_PASSES = 5

# =============================================================================
# Lanes
# =============================================================================

MAX_EXHAUSTIVE_LANES = 6
MAX_GREEDY_PASSES = 50

# =============================================================================
# Displacement metrics
# =============================================================================

MOVE_THRESHOLD = 1
TOP_DISPLACEMENTS = 10
LARGE_CHANGE_RATIO = 0.5
LARGE_CHANGE_DISTANCE = 200
