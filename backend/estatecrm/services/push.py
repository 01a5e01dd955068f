"""
EstateCRM Reminders - Push Notification Service

Purpose: Deliver reminder payloads to an employee's mobile device.

Providers:
    - sns: AWS SNS mobile push. The device token is registered as a platform
      endpoint on the configured FCM/APNS platform application, then the
      message is published to that endpoint.
    - log: local development, logs the message and reports success.

The service never raises for delivery problems; it returns a DeliveryResult
and leaves retry decisions to the caller (the dispatcher does not retry).

AWS Deployment Notes:
    - IAM role needs sns:CreatePlatformEndpoint, sns:Publish,
      sns:GetEndpointAttributes, sns:SetEndpointAttributes
    - The platform endpoint call is idempotent for an unchanged token
"""

import json
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from estatecrm.config import settings
from estatecrm.errors import TransportError
from estatecrm.models.notification import ReminderPayload

logger = logging.getLogger(__name__)

# SNS error codes meaning the device token can never be delivered to again.
# InvalidParameter also covers a bad platform application ARN, so it only
# counts when SNS names the token as the rejected parameter.
INVALID_TOKEN_ERROR_CODES = {"EndpointDisabled"}
TOKEN_PARAMETER_ERROR_CODE = "InvalidParameter"


def is_token_error(code: str, message: str) -> bool:
    if code in INVALID_TOKEN_ERROR_CODES:
        return True
    return code == TOKEN_PARAMETER_ERROR_CODE and "Token" in (message or "")


def to_transport_error(error: Exception) -> TransportError:
    """Wrap a boto error; ClientErrors carry the SNS code and token verdict"""
    if isinstance(error, ClientError):
        details = error.response.get('Error', {})
        code = details.get('Code', '')
        return TransportError(f"{code}: {error}", is_token_invalid=is_token_error(code, details.get('Message')))
    return TransportError(str(error))


class DeliveryResult(BaseModel):
    """Outcome of one push attempt"""
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    is_token_invalid: bool = False


class PushService:
    """
    Push notification transport
    """

    def __init__(self, provider: Optional[str] = None, sns_client=None):
        self.provider = provider or settings.PUSH_PROVIDER

        if self.provider == "sns":
            self.sns = sns_client or boto3.client(
                'sns',
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            )
            self.platform_application_arn = settings.SNS_PLATFORM_APPLICATION_ARN
            logger.info("Push: Using AWS SNS mobile push")
        else:
            self.sns = None
            logger.info("Push: Using log provider (no delivery)")

    async def send(self, device_token: str, payload: ReminderPayload) -> DeliveryResult:
        """
        Send a reminder push notification to one device

        Args:
            device_token: FCM/APNS registration token
            payload: Composed reminder payload

        Returns:
            DeliveryResult (never raises for delivery errors)
        """
        message = self._build_message(payload)

        if self.provider != "sns":
            logger.info(f"Push notification (log provider) for {payload.owner_id}: {message['default']}")
            return DeliveryResult(ok=True)

        try:
            message_id = self._publish(device_token, message)
        except TransportError as e:
            logger.error(f"Push notification failed for reminder {payload.reminder_id}: {e.message}")
            return DeliveryResult(ok=False, error=e.message, is_token_invalid=e.is_token_invalid)

        logger.info(f"Push notification sent for reminder {payload.reminder_id}: {message_id}")
        return DeliveryResult(ok=True, message_id=message_id)

    async def register_device(self, device_token: str) -> Optional[str]:
        """
        Create (or look up) the platform endpoint for a freshly registered token

        SNS returns the existing endpoint for a known token, including one it
        disabled earlier. The app only registers tokens it currently holds, so
        a disabled endpoint for the same token is switched back on here. The
        send path never re-enables endpoints, so stale tokens still surface as
        EndpointDisabled there.

        Returns:
            Endpoint ARN, or None for the log provider
        """
        if self.provider != "sns":
            return None

        try:
            endpoint_arn = self.sns.create_platform_endpoint(
                PlatformApplicationArn=self.platform_application_arn,
                Token=device_token,
            )['EndpointArn']

            attributes = self.sns.get_endpoint_attributes(EndpointArn=endpoint_arn).get('Attributes', {})
            if attributes.get('Token') == device_token and attributes.get('Enabled', 'true').lower() != 'true':
                self.sns.set_endpoint_attributes(
                    EndpointArn=endpoint_arn,
                    Attributes={'Enabled': 'true'},
                )
                logger.info(f"Re-enabled push endpoint {endpoint_arn}")

            return endpoint_arn

        except (BotoCoreError, ClientError) as e:
            raise to_transport_error(e)

    def _publish(self, device_token: str, message: dict) -> str:
        """Register the device endpoint and publish; returns the SNS message id"""
        try:
            endpoint = self.sns.create_platform_endpoint(
                PlatformApplicationArn=self.platform_application_arn,
                Token=device_token,
            )
            response = self.sns.publish(
                TargetArn=endpoint['EndpointArn'],
                MessageStructure='json',
                Message=json.dumps(message),
            )
            return response['MessageId']

        except (BotoCoreError, ClientError) as e:
            raise to_transport_error(e)

    def _build_message(self, payload: ReminderPayload) -> dict:
        """
        Build the SNS JSON message structure

        The data block is what the app reads when it was killed; the
        notification block is displayed by the OS in foreground/background.
        """
        title = settings.PUSH_NOTIFICATION_TITLE
        body = f"Reminder: {payload.name or payload.title or 'Client reminder'}"
        data = payload.to_data()

        fcm = {
            "notification": {"title": title, "body": body},
            "data": data,
            "android": {
                "priority": "high",
                "notification": {"channel_id": "reminder_channel", "sound": "default"},
            },
        }
        apns = {
            "aps": {
                "alert": {"title": title, "body": body},
                "sound": "default",
                "content-available": 1,
                "badge": 1,
            },
            "data": data,
        }

        return {
            "default": f"{title}: {body}",
            "GCM": json.dumps(fcm),
            "APNS": json.dumps(apns),
            "APNS_SANDBOX": json.dumps(apns),
        }
