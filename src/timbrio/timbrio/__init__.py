"""Timbrio attendance core.

Feature modules (attendance, tokens, requests, statistics, payroll) follow the
same split: frozen dataclass models, repository Protocols with MySQL
implementations, a service layer holding the business rules and a thin Flask
controller.
"""
