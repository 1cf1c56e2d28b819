from apps.core.middleware.request_tracking import RequestTrackingMiddleware

__all__ = ['RequestTrackingMiddleware']
