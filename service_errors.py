class ServiceError(Exception):
    """An external service call failed or returned something unusable"""


class ServiceUnavailable(ServiceError):
    """The external service is not configured"""
