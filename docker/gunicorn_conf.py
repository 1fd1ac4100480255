import os

bind = f"0.0.0.0:{os.getenv('PORT','8000')}"
# chat sessions live in worker memory; more than one worker splits a device's conversation
workers = int(os.getenv("WEB_CONCURRENCY", "1")) or 1
worker_class = "uvicorn.workers.UvicornWorker"
# a meal-plan request may poll its remote task for up to TASK_MAX_WAIT seconds per attempt
timeout = int(os.getenv("TIMEOUT", "960"))
keepalive = 5
graceful_timeout = 30
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
