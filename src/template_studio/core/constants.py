"""Editor and renderer constants shared across the template model."""

# Slide-space size per aspect ratio
SLIDE_DIMENSIONS: dict[str, tuple[int, int]] = {
    "16:9": (1920, 1080),
    "4:3": (1600, 1200),
}
DEFAULT_ASPECT_RATIO = "16:9"

# Interactive preview width; height follows the aspect ratio
CANVAS_WIDTH = 640

# Margin from edges for named position presets, in slide coordinates
ELEMENT_MARGIN = 40

# Transformer limits (slide coordinates)
MIN_ELEMENT_SIZE = 20
MIN_FONT_SIZE = 8

MAX_UNDO_ENTRIES = 50

# Fallback sizes used when an element carries no width/height
DEFAULT_ELEMENT_SIZE: dict[str, tuple[int, int]] = {
    "image": (100, 100),
    "video": (640, 360),
    "audio": (300, 60),
    "text": (600, 100),
}

DEFAULT_BACKGROUND_COLOR = "#ffffff"
DEFAULT_TEXT_CONTENT = "New Text"
DEFAULT_TEXT_FONT_SIZE = "64px"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_NEW_ELEMENT_OFFSET = 100

# Offset applied to pasted elements, in slide coordinates
PASTE_OFFSET = 20

# Arrow-key nudge distances (shift for the large step)
NUDGE_STEP = 1
NUDGE_STEP_LARGE = 5
