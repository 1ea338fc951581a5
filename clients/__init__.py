# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_jwt_secret,
    get_email_config,
    get_storage_config,
)
from clients.postgres_client import PostgresClient
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.storage_client import FileStorageClient, StorageError
