# main.py

from push_scheduler.application import create_app

app = create_app()
