"""BiblioTech - personal book library tracker

This package contains:
- Record store server (api.py, library.py, database.py)
- Async record store client (services/)
- Session, form and list-processing logic (session.py, form.py, pipeline.py)
- Application controller and CLI (controller.py, main.py)
"""

__version__ = "1.0.0"
