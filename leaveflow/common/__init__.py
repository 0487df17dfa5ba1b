"""Common module — constants, exceptions, audit trail, pagination, rate limiting."""
