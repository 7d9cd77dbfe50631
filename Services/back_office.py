# Services/back_office.py
"""Admin inventory, spare-part and customer operations."""
import csv
import io
import logging
from typing import Any, Dict, Iterable, List, Optional

from schemas import COLLECTIONS, SparePart, SparePartBase, UserProfile, Vehicle, VehicleBase
from Services.document_store import DocumentStore, server_timestamp
from Services.errors import DocumentNotFound
from Services.formatters import format_currency, format_date
from Services.inbox import InboxAggregator
from Services.object_storage import ObjectStorage

logger = logging.getLogger(__name__)

VEHICLE_STATUSES = ("all", "in_stock", "sold")
PART_STATUSES = ("all", "in_stock", "out_of_stock")


def _contains(value: Optional[str], term: str) -> bool:
    return term in (value or "").lower()


# ----------------------------------------------------------------------
# Vehicles
# ----------------------------------------------------------------------

def filter_vehicles(vehicles: List[Vehicle], search: str = "", status: str = "all") -> List[Vehicle]:
    """Search on name or VIN (case-insensitive) and sold status."""
    term = search.strip().lower()
    return [
        v for v in vehicles
        if (not term or _contains(v.name, term) or _contains(v.vin, term))
        and (status == "all" or (status == "sold") == v.sold)
    ]


def create_vehicle(store: DocumentStore, storage: ObjectStorage, vehicle: VehicleBase,
                   images: Iterable = ()) -> str:
    """Upload *images* (``(filename, bytes)`` pairs), then write the vehicle document."""
    urls = list(vehicle.images)
    for filename, content in images:
        urls.append(storage.upload(filename, content, "vehicles"))
    data = {**vehicle.model_dump(), "images": urls, "created_at": server_timestamp()}
    vehicle_id = store.add(COLLECTIONS["vehicles"], data)
    logger.info(f"Created vehicle {vehicle_id}: {vehicle.name}")
    return vehicle_id


def update_vehicle(store: DocumentStore, vehicle_id: str, changes: Dict[str, Any]) -> Vehicle:
    """Apply *changes* to a vehicle. The merged document is validated before anything is written.

    Raises ``pydantic.ValidationError`` when the result would not be a valid vehicle.
    """
    snapshot = store.get(COLLECTIONS["vehicles"], vehicle_id)
    if snapshot is None:
        raise DocumentNotFound(COLLECTIONS["vehicles"], vehicle_id)
    vehicle = Vehicle(id=vehicle_id, **{**snapshot.data, **changes})
    if changes:
        store.update(COLLECTIONS["vehicles"], vehicle_id, changes)
        logger.info(f"Updated vehicle {vehicle_id}: {', '.join(changes)}")
    return vehicle


def toggle_sold(store: DocumentStore, vehicle_id: str) -> bool:
    snapshot = store.get(COLLECTIONS["vehicles"], vehicle_id)
    if snapshot is None:
        raise DocumentNotFound(COLLECTIONS["vehicles"], vehicle_id)
    sold = not snapshot.data.get("sold", False)
    store.update(COLLECTIONS["vehicles"], vehicle_id, {"sold": sold})
    logger.info(f"Vehicle {vehicle_id} marked {'sold' if sold else 'available'}")
    return sold


def delete_with_images(store: DocumentStore, storage: ObjectStorage, collection: str, doc_id: str) -> None:
    snapshot = store.get(collection, doc_id)
    if snapshot is None:
        raise DocumentNotFound(collection, doc_id)
    store.delete(collection, doc_id)
    for url in snapshot.data.get("images") or []:
        storage.delete(url)
    logger.info(f"Deleted {collection}/{doc_id}")


def vehicle_report(vehicles: List[Vehicle]) -> Dict[str, Any]:
    total_value = sum(v.price for v in vehicles)
    return {
        "total_vehicles": len(vehicles),
        "available_vehicles": sum(1 for v in vehicles if not v.sold),
        "sold_vehicles": sum(1 for v in vehicles if v.sold),
        "total_value": total_value,
        "total_value_label": format_currency(total_value),
    }


def vehicles_csv(vehicles: List[Vehicle]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Vehicle Name", "Price", "Year", "Mileage", "VIN", "Stock Number",
                     "Status", "Condition", "Added Date"])
    for v in vehicles:
        writer.writerow([v.name, v.price, v.year, v.mileage, v.vin, v.stock_number or "",
                         "Sold" if v.sold else "Available", v.condition, format_date(v.created_at)])
    return output.getvalue()


# ----------------------------------------------------------------------
# Spare parts
# ----------------------------------------------------------------------

def filter_parts(parts: List[SparePart], search: str = "", status: str = "all") -> List[SparePart]:
    """Search on name or part number (case-insensitive) and stock status."""
    term = search.strip().lower()
    return [
        p for p in parts
        if (not term or _contains(p.name, term) or _contains(p.part_number, term))
        and (status == "all" or (status == "in_stock") == (p.stock > 0))
    ]


def create_spare_part(store: DocumentStore, storage: ObjectStorage, part: SparePartBase,
                      images: Iterable = ()) -> str:
    urls = list(part.images)
    for filename, content in images:
        urls.append(storage.upload(filename, content, "spare-parts"))
    data = {**part.model_dump(), "images": urls, "created_at": server_timestamp()}
    part_id = store.add(COLLECTIONS["spare_parts"], data)
    logger.info(f"Created spare part {part_id}: {part.name}")
    return part_id


def parts_report(parts: List[SparePart]) -> Dict[str, Any]:
    total_value = sum(p.price * p.stock for p in parts)
    return {
        "total_parts": len(parts),
        "in_stock": sum(1 for p in parts if p.stock > 0),
        "out_of_stock": sum(1 for p in parts if p.stock == 0),
        "total_value": total_value,
        "total_value_label": format_currency(total_value),
    }


def parts_csv(parts: List[SparePart]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Part Name", "Brand", "Category", "Part Number", "Condition", "Price",
                     "Stock", "Warranty", "Added Date"])
    for p in parts:
        writer.writerow([p.name, p.brand, p.category, p.part_number, p.condition, p.price,
                         p.stock, p.warranty, format_date(p.created_at)])
    return output.getvalue()


# ----------------------------------------------------------------------
# Customers and overview
# ----------------------------------------------------------------------

class Customer(UserProfile):
    uid: str


def list_customers(store: DocumentStore) -> List[Customer]:
    snapshots = store.query(store.collection(COLLECTIONS["users"]).order_by("created_at", descending=True))
    return [Customer(uid=s.id, **s.data) for s in snapshots]


def overview(store: DocumentStore, inbox: Optional[InboxAggregator] = None) -> Dict[str, int]:
    inbox = inbox or InboxAggregator(store)
    entries = inbox.fetch()
    pending = store.query(store.collection(COLLECTIONS["car_submissions"]).where("status", "==", "pending"))
    return {
        "total_vehicles": len(store.list_ids(COLLECTIONS["vehicles"])),
        "total_customers": len(store.list_ids(COLLECTIONS["users"])),
        "pending_submissions": len(pending),
        "unread_messages": sum(1 for e in entries if not e.read),
    }
