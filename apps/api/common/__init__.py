from .errors import register_api_error_handlers, status_code_for_error_code

__all__ = ["register_api_error_handlers", "status_code_for_error_code"]
