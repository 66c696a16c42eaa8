"""File and table names for frame selection."""

SOFTWARE = "genemarkst"
DIRECTORY = "frame_selection/genemarkst"

FRAME_TABLE_NAME = "frame_selection"

# processed/ outputs
LOST_FILENAME = "frame_selected_lost.fnn"
COMPLETE_FILENAME = "frame_selected_complete.faa"
PARTIAL_FILENAME = "frame_selected_partial.faa"
INTERNAL_FILENAME = "frame_selected_internal.faa"

# figures/ outputs
RESULTS_GRAPH_FILENAME = "frame_results_pie.txt"
COMPARISON_GRAPH_FILENAME = "frame_comparison_box.txt"

# Graph flags
KEPT_FLAG = "Selected"
REJECTED_FLAG = "Removed"

# Files GeneMarkS-T leaves in its working directory
GENEMARK_LOG_FILE = "gms.log"
GENEMARK_HMM_FILE = "GeneMark_hmm.mod"
