from .http_client import HttpClient, HttpRequestError, HttpResponse, RequestsHttpClient

__all__ = [
    "HttpClient",
    "HttpRequestError",
    "HttpResponse",
    "RequestsHttpClient",
]
