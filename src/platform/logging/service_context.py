"""
Service context extraction for distributed logging.

Tags every log line with `service@env:instance` so lines from several wheel
service replicas sharing one Kvrocks feed can be told apart.
"""

from functools import lru_cache
import os


@lru_cache(maxsize=1)
def get_service_context() -> str:
    service_name = os.getenv('SERVICE_NAME', 'wheel-service')
    deploy_env = os.getenv('DEPLOY_ENV', 'local_dev')

    # ECS exposes the task id in the metadata URI: http://169.254.170.2/v4/{task_id}-{ts}
    metadata_uri = os.getenv('ECS_CONTAINER_METADATA_URI_V4', '')
    if metadata_uri:
        try:
            instance_id = metadata_uri.split('/')[-1].split('-')[0][:8]
        except IndexError:
            instance_id = 'ecs'
    else:
        instance_id = os.getenv('HOSTNAME') or str(os.getpid())

    return f'{service_name}@{deploy_env}:{instance_id}'
