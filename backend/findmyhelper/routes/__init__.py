"""
FindMyHelper Backend — API Routes Package
===========================================

Route Inventory (all under /api except health):
    - auth.py:              register, login, logout, federated login, verify-email
    - users.py:             current user, profile update, own provider profile
    - categories.py:        service category taxonomy
    - providers.py:         provider directory, detail, reviews, apply, edit
    - tasks.py:             client tasks
    - service_requests.py:  client → provider requests
    - reviews.py:           reviews of completed requests
    - uploads.py:           image uploads and local file serving
    - admin.py:             approval queue and decisions
    - health.py:            GET /health

Routes stay thin: resolve dependencies, call one service method, pick
the status code. Business rules and errors live in the services.
"""
