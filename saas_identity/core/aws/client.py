"""boto3 client factory.

Clients are built per set of credentials: system calls use the service's own
credentials, tenant calls use credentials exchanged from the caller's token.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config

from ..models import AwsCredentials

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class AwsClientFactory:
    """Builds and caches boto3 clients/resources for one set of credentials.

    Usage:
        factory = AwsClientFactory(AwsCredentials(region="us-east-1"))
        cognito = factory.client("cognito-idp")
        users = factory.resource("dynamodb").Table("User")
    """

    def __init__(self, credentials: AwsCredentials, timeout: int = REQUEST_TIMEOUT):
        self.credentials = credentials
        self._session: Optional[boto3.session.Session] = None
        self._clients: Dict[str, Any] = {}
        self._resources: Dict[str, Any] = {}
        # Single attempt per call; total_max_attempts counts the first request
        self._config = Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
        )

    @property
    def region(self) -> str:
        return self.credentials.region

    @property
    def session(self) -> boto3.session.Session:
        if self._session is None:
            self._session = boto3.session.Session(**self.credentials.as_client_kwargs())
        return self._session

    def client(self, service_name: str):
        if service_name not in self._clients:
            logger.debug("Creating boto3 client %s (region=%s)", service_name, self.region)
            self._clients[service_name] = self.session.client(service_name, config=self._config)
        return self._clients[service_name]

    def resource(self, service_name: str):
        if service_name not in self._resources:
            self._resources[service_name] = self.session.resource(service_name, config=self._config)
        return self._resources[service_name]
