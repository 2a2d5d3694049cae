# core/aws_client.py
"""
Centralized AWS client factory to ensure proper credential handling.
This module creates AWS clients with explicit credential configuration.
"""
import boto3
from botocore.config import Config
from core.config import settings
from core.logger import logger
import os


def _credentials() -> dict:
    """Credentials from settings (which loads from .env) or the environment."""
    return {
        "aws_access_key_id": settings.AWS_ACCESS_KEY_ID or os.getenv("AWS_ACCESS_KEY_ID"),
        "aws_secret_access_key": settings.AWS_SECRET_ACCESS_KEY or os.getenv("AWS_SECRET_ACCESS_KEY"),
        # Optional for temporary credentials
        "aws_session_token": settings.AWS_SESSION_TOKEN or os.getenv("AWS_SESSION_TOKEN"),
    }


def get_sqs_client():
    """Get SQS client with proper credentials."""
    try:
        # Long polling holds the connection for up to SQS_WAIT_TIME_SECONDS
        config = Config(
            read_timeout=settings.SQS_WAIT_TIME_SECONDS + 10,
            retries={"max_attempts": 3, "mode": "standard"}
        )
        client = boto3.client(
            "sqs",
            region_name=settings.AWS_REGION,
            config=config,
            **_credentials()
        )
        logger.info("SQS client initialized with credentials")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize SQS client: {str(e)}")
        raise


def get_s3_client():
    """Get S3 client with proper credentials."""
    try:
        client = boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            **_credentials()
        )
        logger.info("S3 client initialized with credentials")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize S3 client: {str(e)}")
        raise
