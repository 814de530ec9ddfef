"""Fixed endpoints, selectors and defaults for the MindAR compiler page."""

COMPILER_URL = "https://hiukim.github.io/mind-ar-js-doc/tools/compile"

DEFAULT_FILENAME = "compiled.mind"
ARTIFACT_CONTENT_TYPE = "application/octet-stream"

# Capabilities granted to the embedded compiler frame. No popups, modals or
# top-level navigation.
IFRAME_SANDBOX = "allow-scripts allow-forms allow-same-origin allow-downloads"
IFRAME_ID = "mindbridge-compiler"
IFRAME_WIDTH = 1200
IFRAME_HEIGHT = 800

UPLOAD_ZONE_SELECTOR = (
    '[class*="drop"], [class*="upload"], [id*="drop"], [id*="upload"], '
    ".upload-area, #upload-area"
)
FILE_INPUT_SELECTOR = 'input[type="file"]'
START_SELECTOR = (
    '.start-btn, button, [role="button"], input[type="button"], input[type="submit"]'
)
BUTTON_SELECTOR = 'button, [role="button"]'
ERROR_SELECTOR = '.error, [class*="error"], .alert-error'
DOWNLOAD_CLASS_SELECTOR = '.download-btn, [class*="download"]'

START_LABELS = ("start", "compile")
# Primary action styling of the compiler page (Tailwind teal-400/500).
ACCENT_COLORS = ("rgb(52, 211, 153)",)
ACCENT_CLASSES = ("bg-teal-500",)
LINK_ACCENT_COLOR = "#34d399"

PROGRESS_PATTERN = r"Progress:\s*(\d+(?:\.\d+)?)\s*%"

MESSAGE_PROGRESS = "progress"
MESSAGE_COMPLETE = "complete"
MESSAGE_ERROR = "error"
MESSAGE_COMPILE = "compile"

STRATEGY_DOM = "dom"
STRATEGY_MESSAGE = "message"
STRATEGIES = (STRATEGY_DOM, STRATEGY_MESSAGE)
