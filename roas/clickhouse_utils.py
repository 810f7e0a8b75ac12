"""
ClickHouse client helpers with AWS Secrets integration and retry.
"""

import json
import logging
import random
import time
from functools import wraps
from typing import Any, Dict

import boto3
import clickhouse_connect
from botocore.config import Config

from .config import PipelineConfig


def get_secret_with_retry(
    secret_name="ROAS_WAREHOUSE_CREDENTIALS",
    region_name="us-east-1",
    timeout=15,
    profile_name="default"
):
    """
    Retrieves a secret from AWS Secrets Manager, falling back to the default
    session when the named profile is unavailable.

    Returns:
        Tuple of (secret dict, raw secret string)
    """
    config = Config(connect_timeout=timeout, read_timeout=timeout)
    try:
        session = boto3.session.Session(profile_name=profile_name, region_name=region_name)
        client = session.client(service_name='secretsmanager', region_name=region_name, config=config)
        resp = client.get_secret_value(SecretId=secret_name, VersionStage='AWSCURRENT')
    except Exception as e:
        logging.warning(f"Failed to retrieve secret with profile '{profile_name}': {e}")
        # Fallback to default session (e.g. instance role)
        session = boto3.session.Session(region_name=region_name)
        client = session.client(service_name='secretsmanager', region_name=region_name, config=config)
        resp = client.get_secret_value(SecretId=secret_name, VersionStage='AWSCURRENT')

    secret = resp['SecretString']
    logging.info(f"Successfully retrieved secret: {secret_name}")
    return json.loads(secret), secret


def retry_on_failure(max_retries: int = 3, delay: float = 1.0, backoff: float = 2.0):
    """
    Decorator to retry a function on failure with exponential backoff.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            retries = 0
            current_delay = delay

            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    retries += 1
                    if retries >= max_retries:
                        logging.error(f"Function {func.__name__} failed after {max_retries} attempts: {e}")
                        raise

                    logging.warning(f"Attempt {retries} of {func.__name__} failed: {e}. Retrying in {current_delay}s...")
                    time.sleep(current_delay + random.uniform(0, 0.1))  # Add jitter
                    current_delay *= backoff

        return wrapper
    return decorator


@retry_on_failure(max_retries=3, delay=1.0, backoff=2.0)
def create_clickhouse_client(credentials: Dict[str, Any], database: str = 'roas'):
    """
    Create a ClickHouse client from a Secrets Manager credential dict.

    Expects CLICKHOUSE_URL, CLICKHOUSE_PORT, CLICKHOUSE_USER and
    CLICKHOUSE_PASSWORD keys.
    """
    host = credentials['CLICKHOUSE_URL'].replace('https://', '')
    client = clickhouse_connect.get_client(
        host=host,
        port=int(credentials['CLICKHOUSE_PORT']),
        secure=True,
        username=credentials['CLICKHOUSE_USER'],
        password=credentials['CLICKHOUSE_PASSWORD'],
        database=database,
    )
    logging.info(f"Successfully connected to ClickHouse: {host}")
    return client


@retry_on_failure(max_retries=3, delay=1.0, backoff=2.0)
def create_local_client(config: PipelineConfig):
    """Create a ClickHouse client from explicit connection settings."""
    client = clickhouse_connect.get_client(
        host=config.clickhouse_host,
        port=config.clickhouse_port,
        username=config.clickhouse_user,
        password=config.clickhouse_password,
        database=config.database,
    )
    logging.info(f"Successfully connected to ClickHouse: {config.clickhouse_host}:{config.clickhouse_port}")
    return client


def client_from_config(config: PipelineConfig):
    """Connect using AWS secrets or the explicit settings, as configured."""
    if config.use_aws_secrets:
        credentials, _ = get_secret_with_retry(
            secret_name=config.aws_secret_name,
            region_name=config.aws_region,
            profile_name=config.aws_profile,
        )
        return create_clickhouse_client(credentials, database=config.database)
    return create_local_client(config)
