from decouple import config

# Fallback rates for throttles that do not set their own rate
NINJA_EXTRA = {
    "THROTTLE_RATES": {
        "user": config("THROTTLE_USER_RATE", default="1000/day"),
        "anon": config("THROTTLE_ANON_RATE", default="250/day"),
    },
    # Number of reverse proxies in front of the app, used to find the client IP
    "NUM_PROXIES": config("NUM_PROXIES", default=None, cast=lambda v: None if v in (None, "") else int(v)),
}
