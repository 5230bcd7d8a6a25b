from ninja_extra.throttling import AnonRateThrottle


class AnonDefaultThrottle(AnonRateThrottle):
    rate = "600/min"


class PassIssuanceThrottle(AnonRateThrottle):
    rate = "30/min"
