# Routes package init
"""
VetPintar Backend — API Routes Package
========================================

What:  HTTP and WebSocket handlers. Each module owns one resource.

Route Inventory:
    - health.py:           GET  /api/health
    - auth.py:             /api/auth            (login, register, google-login, refresh, me, ...)
    - users.py:            /api/users           (admin user management, own profile)
    - clinics.py:          /api/clinics         (clinics and clinic membership)
    - patients.py:         /api/patients
    - appointments.py:     /api/appointments    (scheduling, status, reminders)
    - medical_records.py:  /api/medical-records (visits, hospitalization)
    - invoices.py:         /api/invoices        (billing, payments)
    - products.py:         /api/products        (inventory, stock)
    - dashboard.py:        /api/dashboard       (counters, charts, activity)
    - ai.py:               POST /api/ai/{path}  (AI service proxy)
    - realtime.py:         WS   /ws             (clinic event stream)

Routes stay thin: parse the request, resolve the caller and clinic through
dependencies.py, call one service method, wrap the result in an envelope.
"""
