"""
Service Orders Domain

Order lifecycle for the repair shop: unique order codes, status transitions
with audited history, payments, warranty tracking, delivery notes and
technician assignment. Notifications go out through services.notification_service.
"""
