"""DynamoDB table used as the sync destination."""
import logging
import uuid
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from processor.dates import format_date_value, parse_date_value
from processor.errors import ApplyError, ListError
from processor.models import DestinationRow, NormalizedEvent

logger = logging.getLogger(__name__)


class DynamoDBManager:
    """Manager for listing, creating and updating synced rows in DynamoDB."""

    MAX_ITEM_BYTES = 400 * 1024  # DynamoDB item size limit

    def __init__(
        self,
        table_name: str,
        id_attribute: str,
        date_attribute: str,
        location_attribute: Optional[str] = None,
        title_attribute: str = 'title',
        key_attribute: str = 'row_id'
    ):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            id_attribute: Attribute holding the event identity
            date_attribute: Map attribute holding {'start', 'end'}
            location_attribute: Optional attribute for the location
            title_attribute: Attribute holding the title
            key_attribute: Partition key of the table, used as row handle
        """
        self.table_name = table_name
        self.id_attribute = id_attribute
        self.date_attribute = date_attribute
        self.location_attribute = location_attribute
        self.title_attribute = title_attribute
        self.key_attribute = key_attribute
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    @property
    def has_location(self) -> bool:
        return bool(self.location_attribute)

    def list_rows(self) -> List[DestinationRow]:
        """
        Retrieve all rows from DynamoDB using Scan operation.

        Returns:
            List of DestinationRow objects

        Raises:
            ListError: If the table cannot be scanned
        """
        logger.info("Scanning DynamoDB table for all rows")

        try:
            response = self.table.scan()
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise ListError(f"Failed to scan table {self.table_name}: {e}") from e

        rows = [self._item_to_row(item) for item in items]
        logger.info(f"Retrieved {len(rows)} rows from DynamoDB")
        return rows

    def validate_row(self, event: NormalizedEvent) -> None:
        """
        Reject events whose item would exceed the DynamoDB size limit.

        Raises:
            ApplyError: If the item is too large
        """
        size = sum(len(str(value).encode('utf-8')) for value in self._item_values(event))
        if size > self.MAX_ITEM_BYTES:
            raise ApplyError(
                f"item is {size} bytes, DynamoDB accepts at most {self.MAX_ITEM_BYTES}",
                identity=event.identity
            )

    def create_row(self, event: NormalizedEvent) -> str:
        """
        Put a new item for the event under a fresh handle.

        Returns:
            Handle (partition key) of the new item

        Raises:
            ApplyError: If the write is rejected
        """
        handle = str(uuid.uuid4())
        item = {
            self.key_attribute: handle,
            self.id_attribute: event.identity,
            self.title_attribute: event.title,
            self.date_attribute: self._date_map(event),
        }
        if self.has_location and event.location:
            item[self.location_attribute] = event.location

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression=Attr(self.key_attribute).not_exists()
            )
        except (ClientError, BotoCoreError) as e:
            raise ApplyError(f"Failed to create item: {e}", identity=event.identity) from e
        return handle

    def update_row(self, handle: str, event: NormalizedEvent) -> None:
        """
        Overwrite the synced attributes of an existing item.

        The location attribute is removed when the event has none.

        Raises:
            ApplyError: If the item no longer exists or the write is rejected
        """
        names = {
            '#title': self.title_attribute,
            '#identity': self.id_attribute,
            '#date': self.date_attribute,
        }
        values = {
            ':title': event.title,
            ':identity': event.identity,
            ':date': self._date_map(event),
        }
        expression = 'SET #title = :title, #identity = :identity, #date = :date'

        if self.has_location:
            names['#location'] = self.location_attribute
            if event.location:
                values[':location'] = event.location
                expression += ', #location = :location'
            else:
                expression += ' REMOVE #location'

        try:
            self.table.update_item(
                Key={self.key_attribute: handle},
                UpdateExpression=expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression=Attr(self.key_attribute).exists()
            )
        except (ClientError, BotoCoreError) as e:
            raise ApplyError(f"Failed to update item {handle}: {e}", identity=event.identity) from e

    def _item_to_row(self, item: dict) -> DestinationRow:
        """
        Convert DynamoDB item to DestinationRow object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            DestinationRow object; identity is None when the item has none
        """
        identity = item.get(self.id_attribute)
        dates = item.get(self.date_attribute) or {}
        start = end = None
        try:
            start = parse_date_value(dates.get('start'))
            end = parse_date_value(dates.get('end'))
        except (AttributeError, ValueError) as e:
            logger.warning(f"Unreadable date on item {item.get(self.key_attribute)}: {e}")

        return DestinationRow(
            handle=str(item[self.key_attribute]),
            identity=str(identity) if identity else None,
            title=item.get(self.title_attribute, ''),
            start=start,
            end=end,
            location=item.get(self.location_attribute) if self.has_location else None
        )

    def _date_map(self, event: NormalizedEvent) -> dict:
        dates = {'start': format_date_value(event.start)}
        if event.end is not None:
            dates['end'] = format_date_value(event.end)
        return dates

    def _item_values(self, event: NormalizedEvent) -> list:
        return [event.identity, event.title, event.location or '',
                format_date_value(event.start), format_date_value(event.end) or '']
