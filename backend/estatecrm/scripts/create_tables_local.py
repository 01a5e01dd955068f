"""
Create the reminder, employee and notification tables on DynamoDB Local

Usage:
    python -m estatecrm.scripts.create_tables_local
    python -m estatecrm.scripts.create_tables_local --reset   # drop and recreate
"""

import argparse
import os
import sys

import boto3
from botocore.exceptions import ClientError

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from estatecrm.config import settings
from estatecrm.services.db import TABLE_KEYS


def local_client():
    return boto3.client(
        'dynamodb',
        endpoint_url=settings.dynamodb_endpoint,
        region_name=settings.AWS_REGION,
        aws_access_key_id='local',
        aws_secret_access_key='local'
    )


def drop_table(client, name: str):
    try:
        client.delete_table(TableName=name)
        client.get_waiter('table_not_exists').wait(TableName=name)
        print(f"  dropped {name}")
    except ClientError as e:
        if e.response['Error']['Code'] != 'ResourceNotFoundException':
            raise


def create_table(client, name: str, key: str) -> bool:
    """Create a PAY_PER_REQUEST table keyed by `key`; False if it already exists"""
    try:
        client.create_table(
            TableName=name,
            KeySchema=[{'AttributeName': key, 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': key, 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST'
        )
    except ClientError as e:
        if e.response['Error']['Code'] == 'ResourceInUseException':
            return False
        raise

    client.get_waiter('table_exists').wait(TableName=name)
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument('--reset', action='store_true', help='drop existing tables first')
    args = parser.parse_args(argv)

    client = local_client()
    print(f"DynamoDB Local at {settings.dynamodb_endpoint} ({settings.AWS_REGION})")

    for table_type, key in TABLE_KEYS.items():
        name = settings.get_table_name(table_type)
        if args.reset:
            drop_table(client, name)
        created = create_table(client, name, key)
        print(f"  {'created' if created else 'exists '} {name} (HASH {key})")


if __name__ == "__main__":
    main()
