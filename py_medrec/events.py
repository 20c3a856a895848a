# -*- coding: utf-8 -*-
# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module defines the boundary to the audit and notification services.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AbstractEventPublisher(ABC):
    """
    An abstract base class for the audit trail and clinical notification sinks.
    """

    @abstractmethod
    def record_audit(self, event_type: str, entity_id: str, data: Dict[str, Any]) -> None:
        """
        Record a state transition in the audit trail.

        :param event_type: e.g. 'discrepancy_transitioned'.
        :param entity_id: The id of the record that changed.
        :param data: Event details.
        """
        raise NotImplementedError

    @abstractmethod
    def notify(self, notification_type: str, entity_id: str, data: Dict[str, Any]) -> None:
        """
        Send a clinical notification, e.g. for a critical discrepancy or a
        record needing immediate clinical review.

        :param notification_type: e.g. 'critical_discrepancy'.
        :param entity_id: The id of the record the notification concerns.
        :param data: Notification details.
        """
        raise NotImplementedError


class LoggingEventPublisher(AbstractEventPublisher):
    """Publishes audit events and notifications to the application log."""

    def record_audit(self, event_type: str, entity_id: str, data: Dict[str, Any]) -> None:
        logger.info(f"AUDIT {event_type} {entity_id}: {data}")

    def notify(self, notification_type: str, entity_id: str, data: Dict[str, Any]) -> None:
        logger.warning(f"NOTIFY {notification_type} {entity_id}: {data}")
