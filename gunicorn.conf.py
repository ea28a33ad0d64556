# gunicorn.conf.py
# gunicorn -c gunicorn.conf.py miqat.main:app
import multiprocessing, os

bind = f"0.0.0.0:{os.getenv('PORT','5000')}"
# A schedule is four SolarTime builds of pure float math; sync workers suffice.
workers = int(os.getenv("WEB_CONCURRENCY", max(2, multiprocessing.cpu_count())))
threads = 1
worker_class = "sync"
timeout = int(os.getenv("MIQAT_WORKER_TIMEOUT", "30"))
graceful_timeout = 30
keepalive = 2
# Config file and metric series are set up once in the master.
preload_app = True
max_requests = int(os.getenv("MIQAT_MAX_REQUESTS", "2000"))
max_requests_jitter = 200

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

access_log_format = '%(h)s "%(r)s" %(s)s %(b)s rt:%(L)s req_id:%({X-Request-ID}i)s'
