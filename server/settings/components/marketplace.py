"""Drive and marketplace tunables."""

from server.settings.components import config

# Folder that receives copies made through shared links
DRIVE_SHARED_FOLDER_NAME = config('DRIVE_SHARED_FOLDER_NAME', default='shared')

# Number of parent folders whose children are fetched per copy query
DRIVE_COPY_BATCH_SIZE = config('DRIVE_COPY_BATCH_SIZE', cast=int, default=10)

# Files with these MIME types are handed to the AI indexer
DRIVE_AI_PROCESSABLE_MIME_TYPES = config(
    'DRIVE_AI_PROCESSABLE_MIME_TYPES',
    cast=lambda types: frozenset(
        mime.strip() for mime in types.split(',') if mime.strip()
    ),
    default=(
        'text/plain,'
        'application/pdf,'
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
    ),
)

# Folder that receives copies of purchased listings
MARKETPLACE_FOLDER_NAME = config(
    'MARKETPLACE_FOLDER_NAME',
    default='marketplace',
)

# Commission rate (percent) used when content has no default of its own
MARKETPLACE_DEFAULT_COMMISSION_RATE = config(
    'MARKETPLACE_DEFAULT_COMMISSION_RATE',
    cast=int,
    default=10,
)

# Affiliate codes
MARKETPLACE_AFFILIATE_CODE_LENGTH = config(
    'MARKETPLACE_AFFILIATE_CODE_LENGTH',
    cast=int,
    default=8,
)
MARKETPLACE_CODE_GENERATION_ATTEMPTS = config(
    'MARKETPLACE_CODE_GENERATION_ATTEMPTS',
    cast=int,
    default=10,
)
