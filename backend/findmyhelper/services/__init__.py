"""
FindMyHelper Backend — Services Layer
=======================================

What:  Business rules between the routes (HTTP) and Storage (persistence).
How:   Services take a Storage (and, where needed, a Notifier) in their
       constructor and are built per request by dependencies.py.

Service Inventory:
    - IdentityService:           register, login, email verification,
                                 federated login, profile edits
    - FirebaseTokenVerifier:     ID token signature/claims verification
    - SessionManager:            signed-cookie server-side sessions
    - ProviderApprovalWorkflow:  pending → approved | rejected
    - ProviderDirectory:         public listings, detail, owner edits
    - MarketplaceService:        tasks, service requests, reviews
    - Notifier:                  templated transactional email
    - ImageUploadService:        image validation + local/S3 object storage
"""
