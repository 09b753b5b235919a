# Shared Common Library for Flight Training Management System
# Authentication, error handling, pagination, health checks, caching and
# upstream HTTP clients used by the weather service.

__version__ = "1.0.0"
