"""
Celery application and beat schedule for the cron pipelines.
"""
from celery import Celery
from celery.schedules import crontab

from flaneur.core.config import settings

# Create the Celery application
celery_app = Celery(
    'flaneur',
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=['flaneur.tasks.cron_tasks'],
)

TASK_NAME = 'flaneur.tasks.cron_tasks.run_cron_job'

# Configure Celery
celery_app.conf.update(
    # Task serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Task execution
    task_always_eager=False,
    task_eager_propagates=True,
    task_time_limit=600,

    # Result backend
    result_expires=3600,

    # Worker configuration
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,

    task_routes={
        'flaneur.tasks.cron_tasks.*': {'queue': 'pipelines'},
    },
    task_default_queue='default',

    # Beat schedule
    beat_schedule={
        'enrich-briefs': {
            'task': TASK_NAME,
            'schedule': crontab(minute=15),
            'args': ('enrich-briefs',),
        },
        'sync-auction-calendar': {
            'task': TASK_NAME,
            'schedule': crontab(minute=0, hour=6, day_of_week='sunday'),
            'args': ('sync-auction-calendar',),
        },
        'sync-global-auction-calendar': {
            'task': TASK_NAME,
            'schedule': crontab(minute=30, hour=6, day_of_week='sunday'),
            'args': ('sync-global-auction-calendar',),
        },
        'sync-alfresco-permits': {
            'task': TASK_NAME,
            'schedule': crontab(minute=0, hour=10),
            'args': ('sync-alfresco-permits',),
        },
        'sync-residency-radar': {
            'task': TASK_NAME,
            'schedule': crontab(minute=0, hour=8, day_of_week='wednesday'),
            'args': ('sync-residency-radar',),
        },
        'process-property-watch': {
            'task': TASK_NAME,
            'schedule': crontab(minute=0, hour=7),
            'args': ('process-property-watch',),
        },
    },

    # Timezone
    timezone='UTC',
    enable_utc=True,
)

if __name__ == '__main__':
    celery_app.start()
