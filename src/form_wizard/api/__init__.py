"""
HTTP surface for form-wizard-service.

- App factory: `form_wizard.api.main.create_app`
- Serverless/uvicorn entrypoint: `api/index.py`
"""
