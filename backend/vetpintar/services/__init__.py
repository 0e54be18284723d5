# Services package init
"""
VetPintar Backend — Services Layer
====================================

What:  Business rules between routes (HTTP) and the database.
How:   Each service is a stateless class with a module-level singleton.
       Methods take an AsyncSession plus the caller's clinic_id and never
       touch rows of another clinic.

Service Inventory:
    - AuthService / UserService / ClinicService: accounts and tenancy
    - PatientService, AppointmentService, MedicalRecordService: clinical data
    - InvoiceService, ProductService: billing and inventory
    - DashboardService: read-only aggregates
    - NotificationService: WebSocket rooms and event fan-out
    - AIProxyService: resilient HTTP client for the AI service

Pure helpers live beside them: scheduling.py (slot overlap) and billing.py
(money arithmetic, invoice numbers, payment status).
"""
