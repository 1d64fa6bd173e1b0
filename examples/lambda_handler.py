"""
AWS Lambda handler for virus scanning S3 objects using ICAP.

This example streams newly uploaded S3 objects to an ICAP antivirus server
without buffering them in memory; the object's ContentLength and ContentType
are declared to the server as-is.

Environment Variables:
    ICAPSCAN_HOST: Hostname of the ICAP antivirus server
    ICAPSCAN_PORT: Port of the ICAP server (default: 1344)
    ICAPSCAN_SERVICE: ICAP service name (default: "avscan")

Requirements:
    - boto3
    - aws-lambda-powertools
    - icapscan
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import boto3
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext
from botocore.exceptions import ClientError

from icapscan import IcapClient, StreamSource, Verdict, load_settings
from icapscan.exception import IcapConnectionError, IcapNegotiationError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

# Initialize logger
logger = Logger(service="virus-scanner")

# Initialize S3 client
s3_client: S3Client = boto3.client("s3")

# Configuration from environment
SETTINGS = load_settings()


class VirusFoundException(Exception):
    """Raised when the ICAP server does not allow the scanned content."""

    def __init__(self, bucket: str, key: str, verdict: Verdict):
        self.bucket = bucket
        self.key = key
        self.verdict = verdict
        super().__init__(f"Scan verdict {verdict.value} for s3://{bucket}/{key}")


@logger.inject_lambda_context
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    """
    Lambda handler for S3 object virus scanning.

    Triggered by S3 CreateObject events. Streams each object to the ICAP
    server and raises if any object is not allowed.

    Args:
        event: S3 event containing bucket and key information
        context: Lambda context

    Returns:
        dict with scan results

    Raises:
        VirusFoundException: If an object is blocked or the verdict is unknown
    """
    records = event.get("Records", [])
    if not records:
        logger.warning("No records in event")
        return {"status": "no_records"}

    results = []

    # Capabilities are negotiated once and shared by every scan in this invocation
    with IcapClient.from_settings(SETTINGS) as client:
        for record in records:
            s3_info = record.get("s3", {})
            bucket = s3_info.get("bucket", {}).get("name")
            key = s3_info.get("object", {}).get("key")

            if not bucket or not key:
                logger.warning("Missing bucket or key in record", extra={"record": record})
                continue

            logger.info("Processing S3 object", extra={"bucket": bucket, "key": key})

            try:
                response = s3_client.get_object(Bucket=bucket, Key=key)
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                logger.exception(
                    "Failed to download S3 object",
                    extra={"bucket": bucket, "key": key, "error_code": error_code},
                )
                raise

            source = StreamSource(
                response["Body"],
                size=response["ContentLength"],
                content_type=response.get("ContentType", "application/octet-stream"),
            )
            try:
                verdict = client.scan_verdict(source)
            except (IcapConnectionError, IcapNegotiationError):
                logger.exception(
                    "ICAP server error",
                    extra={"bucket": bucket, "key": key, "icap_host": SETTINGS.host},
                )
                raise

            if verdict is not Verdict.ALLOWED:
                logger.error(
                    "Object not allowed by ICAP server",
                    extra={"bucket": bucket, "key": key, "verdict": verdict.value},
                )
                raise VirusFoundException(bucket=bucket, key=key, verdict=verdict)

            logger.info("No virus detected - content is clean", extra={"bucket": bucket, "key": key})
            results.append({"bucket": bucket, "key": key, "status": "clean"})

    return {
        "status": "success",
        "scanned_objects": len(results),
        "results": results,
    }
