STANDARD_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp"}
HEIF_EXTENSIONS = {".heic", ".heif", ".hif"}

DEFAULT_WATERMARK_TEXT = "GPS Map Camera"
EXPORT_NAME_SUFFIX = "ByGPSMapCamera"

MAP_STYLE_SATELLITE = "satellite"
MAP_STYLE_ROADMAP = "roadmap"
VALID_MAP_STYLES = {MAP_STYLE_SATELLITE, MAP_STYLE_ROADMAP}

VARIANT_BAR = "bar"
VARIANT_CARD = "card"
VALID_VARIANTS = {VARIANT_BAR, VARIANT_CARD}

# 4:3 landscape, 3:4 portrait
LANDSCAPE_RATIO = 4.0 / 3.0
PORTRAIT_RATIO = 3.0 / 4.0

# 导出体积预算默认 500KB
DEFAULT_BUDGET_BYTES = 500 * 1024
DEFAULT_PREVIEW_WIDTH = 1080
