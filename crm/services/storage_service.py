"""
Object Storage Service for S3-compatible storage (MinIO, AWS S3, DigitalOcean Spaces).

Holds sale documents: payment proofs (images or PDF) and invoices (PDF/XML).
Objects are public-read and keyed per organization and sale.
"""
import json
import logging
import mimetypes
import os
import uuid
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from crm.exceptions import BusinessLogicError

logger = logging.getLogger(__name__)

# Accepted MIME types per sale document kind
DOCUMENT_MIME_TYPES = {
    'payment-proof': {'image/jpeg', 'image/png', 'image/webp', 'application/pdf'},
    'invoice-pdf': {'application/pdf'},
    'invoice-xml': {'application/xml', 'text/xml'},
}


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = get_storage_service()
        url = storage.upload_sale_document(file, org_id, sale_id, 'payment-proof')
    """

    def __init__(self, client=None):
        """Initialize S3 client from Flask config."""
        config = current_app.config
        self.bucket = config['S3_BUCKET']
        self.public_url = config['S3_PUBLIC_URL']

        self.client = client or boto3.client(
            's3',
            endpoint_url=config['S3_ENDPOINT'],
            aws_access_key_id=config['S3_ACCESS_KEY'],
            aws_secret_access_key=config['S3_SECRET_KEY'],
            region_name=config['S3_REGION'],
            config=BotoConfig(signature_version='s3v4')
        )

        if client is None:
            self._ensure_bucket_exists()

    def _ensure_bucket_exists(self):
        """Create bucket (public-read) if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != '404':
                logger.error(f"[STORAGE] Failed to check bucket: {e}")
                raise
            self.client.create_bucket(Bucket=self.bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [{
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": "s3:GetObject",
                    "Resource": f"arn:aws:s3:::{self.bucket}/*"
                }]
            }
            self.client.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] Bucket '{self.bucket}' created with public-read policy")

    def upload_file(self, file: FileStorage, object_name: str, content_type: Optional[str] = None,
                    allowed_types=None) -> str:
        """
        Upload a file and return its public URL.

        Raises:
            BusinessLogicError: file missing, too large or of a disallowed type
            ClientError: upload failed
        """
        content_type = self._validate_file(file, allowed_types, content_type)

        try:
            file.seek(0)
            self.client.upload_fileobj(
                file.stream,
                self.bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
        except ClientError as e:
            logger.exception(f"[STORAGE] Upload failed for '{object_name}': {e}")
            raise

        url = self.get_public_url(object_name)
        logger.info(f"[STORAGE] File uploaded: {url}")
        return url

    def upload_sale_document(self, file: FileStorage, organization_id: int, sale_id: int, kind: str) -> str:
        """Store a payment proof or invoice of a sale."""
        if kind not in DOCUMENT_MIME_TYPES:
            raise BusinessLogicError(f'Tipo de documento inválido: {kind}')
        extension = os.path.splitext(secure_filename(file.filename or ''))[1].lower()
        object_name = f"orgs/{organization_id}/sales/{sale_id}/{kind}-{uuid.uuid4().hex}{extension}"
        return self.upload_file(file, object_name, allowed_types=DOCUMENT_MIME_TYPES[kind])

    def delete_file(self, object_name: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=object_name)
            logger.info(f"[STORAGE] File deleted: {object_name}")
            return True
        except ClientError as e:
            logger.exception(f"[STORAGE] Delete failed: {e}")
            return False

    def get_public_url(self, object_name: str) -> str:
        return f"{self.public_url}/{self.bucket}/{object_name}"

    def _validate_file(self, file: FileStorage, allowed_types=None, content_type: Optional[str] = None) -> str:
        """Check presence, size and MIME type; return the effective content type."""
        if not file or not file.filename:
            raise BusinessLogicError('Nenhum arquivo enviado')

        max_size = current_app.config.get('MAX_UPLOAD_SIZE', 5 * 1024 * 1024)
        file.seek(0, 2)
        file_size = file.tell()
        file.seek(0)
        if file_size > max_size:
            raise BusinessLogicError(f'Arquivo muito grande. Máximo {max_size / (1024 * 1024):.1f}MB')

        content_type = content_type or file.content_type or mimetypes.guess_type(file.filename)[0] \
            or 'application/octet-stream'
        allowed = allowed_types or current_app.config.get('ALLOWED_MIME_TYPES', set())
        if allowed and content_type not in allowed:
            raise BusinessLogicError(
                f"Tipo de arquivo não permitido: {content_type}. Permitidos: {', '.join(sorted(allowed))}"
            )
        return content_type


# Singleton instance
_storage_service = None


def get_storage_service() -> StorageService:
    """Get or create StorageService singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
