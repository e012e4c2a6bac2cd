import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

log = logging.getLogger(__name__)


class ResponseShape(str, Enum):
    """Envelopes Zoho (and Zoho Deluge functions) wrap record lists in."""
    LIST = "list"                          # [ {...}, ... ]
    DATA = "data"                          # {"data": [ ... ], "info": {...}}
    CRM_API_RESPONSE = "crm_api_response"  # {"crmAPIResponse": {"body": <any known shape>}}
    FUNCTION_OUTPUT = "function_output"    # {"details": {"output": "<json string>"}}
    EMPTY = "empty"                        # None / "" / {} (Zoho answers 204 for empty modules)
    UNKNOWN = "unknown"


def classify_response(payload: Any) -> ResponseShape:
    if payload is None or payload == "" or payload == {}:
        return ResponseShape.EMPTY
    if isinstance(payload, list):
        return ResponseShape.LIST
    if isinstance(payload, dict):
        if isinstance(payload.get("data"), list):
            return ResponseShape.DATA
        if isinstance(payload.get("crmAPIResponse"), dict) and "body" in payload["crmAPIResponse"]:
            return ResponseShape.CRM_API_RESPONSE
        details = payload.get("details")
        if isinstance(details, dict) and "output" in details:
            return ResponseShape.FUNCTION_OUTPUT
    return ResponseShape.UNKNOWN


def extract_records(payload: Any, context: str = "") -> List[Dict[str, Any]]:
    """
    Extract the record list from any known response shape.

    Unknown shapes yield an empty list and a warning; nested envelopes
    (a function output wrapping a data envelope, etc.) are unwrapped recursively.
    """
    shape = classify_response(payload)
    if shape is ResponseShape.EMPTY:
        return []
    if shape is ResponseShape.LIST:
        return [r for r in payload if isinstance(r, dict)]
    if shape is ResponseShape.DATA:
        return [r for r in payload["data"] if isinstance(r, dict)]
    if shape is ResponseShape.CRM_API_RESPONSE:
        return extract_records(payload["crmAPIResponse"]["body"], context)
    if shape is ResponseShape.FUNCTION_OUTPUT:
        output = payload["details"]["output"]
        if isinstance(output, str):
            try:
                output = json.loads(output)
            except ValueError:
                log.warning(f"Unparseable function output for {context or 'response'}: {output[:200]}")
                return []
        return extract_records(output, context)

    preview = str(payload)[:200]
    log.warning(f"Unknown Zoho response shape for {context or 'response'}, treating as empty: {preview}")
    return []


def has_more_records(payload: Any) -> bool:
    """Pagination flag from a DATA envelope's info block."""
    if isinstance(payload, dict):
        info = payload.get("info") or {}
        return bool(info.get("more_records"))
    return False


def extract_created_id(payload: Any) -> str:
    """
    Record id from a Zoho insert response.

    {"data": [{"code": "SUCCESS", "details": {"id": "..."}, "status": "success"}]}
    Raises ValueError when the first result is not a success or carries no id.
    """
    results = extract_records(payload, "insert response")
    if not results:
        raise ValueError(f"Empty insert response: {str(payload)[:200]}")
    first = results[0]
    status = str(first.get("status", "")).lower()
    if status and status != "success":
        raise ValueError(f"Zoho rejected record ({first.get('code')}): {first.get('message')} {first.get('details')}")
    record_id = (first.get("details") or {}).get("id") or first.get("id")
    if not record_id:
        raise ValueError(f"Insert response carries no record id: {first}")
    return str(record_id)


def lookup_id(value: Any) -> Optional[str]:
    """Id of a Zoho lookup field, which arrives as {"id": ..., "name": ...} or a bare id."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


def lookup_name(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("name") or "")
    return str(value or "")


class NormalizerService:
    """
    Converts raw Zoho records into the portal's own shapes.
    """

    def deal_fields(self, deal: Dict[str, Any]) -> Dict[str, Any]:
        """
        Project fields carried by a Deal record, without defaults.

        Values are None or "" where the Deal has nothing for a field. The
        project date is the start date when set, else the closing date.
        """
        return {
            "name": deal.get("Deal_Name"),
            "customer": lookup_name(deal.get("Account_Name")),
            "status": deal.get("Stage"),
            "date": deal.get("Project_Start_Date") or deal.get("Closing_Date"),
            "address": deal.get("Shipping_Street"),
            "salesRep": lookup_name(deal.get("Owner")),
            "supplierColor": deal.get("Supplier_Color"),
            "trimColor": deal.get("Trim_Coil_Color"),
            "accessoryColor": deal.get("Shingle_Accessory_Color"),
            "gutterType": deal.get("Gutter_Types"),
            "sidingStyle": deal.get("Siding_Style"),
            "workOrderLink": deal.get("Work_Order_Link"),
        }

    def deal_changes(self, deal: Dict[str, Any]) -> Dict[str, Any]:
        """Only the project fields a (possibly partial) Deal actually carries a value for."""
        return {field: value for field, value in self.deal_fields(deal).items() if value not in (None, "")}

    def normalize_deal(self, deal: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Deal record to a project dict (the cache detail format)."""
        deal_id = lookup_id(deal.get("id"))
        if not deal_id:
            return None
        project = {"id": deal_id}
        project.update((field, value or "") for field, value in self.deal_fields(deal).items())
        project["customer"] = project["customer"] or "Unknown"
        project["status"] = project["status"] or "Active"
        return project

    def normalize_portal_user(self, user: Dict[str, Any]) -> Optional[Tuple[str, str]]:
        """(zoho user id, lower-cased email) or None when either is missing."""
        user_id = lookup_id(user.get("id"))
        email = user.get("Email") or user.get("email")
        if not user_id or not email:
            return None
        return user_id, str(email).strip().lower()

    def normalize_connection(self, connection: Dict[str, Any]) -> Optional[Tuple[str, str]]:
        """(zoho user id, deal id) from a Portal user x Job junction record."""
        user_id = lookup_id(connection.get("Contractors"))
        deal_id = lookup_id(connection.get("Projects"))
        if not user_id or not deal_id:
            return None
        return user_id, deal_id

    def normalize_painter(self, painter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        painter_id = lookup_id(painter.get("id"))
        name = painter.get("Name") or painter.get("name")
        if not painter_id or not name:
            return None
        email = painter.get("Email") or painter.get("email")
        phone = painter.get("Phone") or painter.get("phone")
        return {
            "id": painter_id,
            "name": str(name),
            "email": str(email) if email else None,
            "phone": str(phone) if phone else None,
            "active": painter.get("Active") is not False and painter.get("active") is not False,
        }
