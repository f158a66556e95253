from decouple import config

# How long a promoted waitlist entry has to accept the freed seat.
REGISTRATION_PROMOTION_WINDOW_HOURS = config("REGISTRATION_PROMOTION_WINDOW_HOURS", default=24, cast=int)

# Optimistic-concurrency retry policy: attempts are spaced base * 2**n seconds apart.
REGISTRATION_MAX_RETRIES = config("REGISTRATION_MAX_RETRIES", default=5, cast=int)
REGISTRATION_RETRY_BASE_DELAY = config("REGISTRATION_RETRY_BASE_DELAY", default=0.01, cast=float)

# Dotted path of the event catalog provider the engine reads capacity and schedule from.
REGISTRATION_EVENT_CATALOG = config("REGISTRATION_EVENT_CATALOG", default="events.catalog.DjangoEventCatalog")

# Max records handled per sweep run.
REGISTRATION_SWEEP_BATCH_SIZE = config("REGISTRATION_SWEEP_BATCH_SIZE", default=500, cast=int)
