# ==============================================================================
# SERVICIO DE LOGÍSTICA
# ==============================================================================
# Flotilla, entregas a clientes, recolecciones con proveedores y gastos por
# viaje. El estatus del vehículo sigue al viaje:
#   viaje en camino   -> vehículo En Ruta
#   viaje terminado   -> vehículo Disponible
# ==============================================================================

import logging
from collections import defaultdict
from dataclasses import asdict
from typing import Any, Dict, List, NamedTuple, Optional

from agro_erp.errors import InvalidTransitionError, NotFoundError, ValidationError
from agro_erp.models.entities import (
    Delivery, DeliveryStatus, LogisticsExpense, Pickup, PickupStatus, TripType, Vehicle, VehicleStatus,
)
from agro_erp.repositories.collection_repository import new_document_id
from agro_erp.repositories.document_store import DocumentStore, Transaction
from agro_erp.services.audit_service import AuditService, fmt_money
from agro_erp.services.common import DELIVERIES, LOGISTICS_EXPENSES, PICKUPS, PURCHASES, VEHICLES, service_call
from agro_erp.services.purchase_service import LOGISTICS_RECEIVED
from agro_erp.utils import folio, money, now_iso

logger = logging.getLogger(__name__)


class TripKind(NamedTuple):
    collection: str
    label: str
    prefix: str
    statuses: type
    in_transit: str
    terminal: frozenset


TRIP_KINDS = {
    TripType.DELIVERY.value: TripKind(
        DELIVERIES, 'Entrega', 'ENT', DeliveryStatus, DeliveryStatus.EN_RUTA.value,
        frozenset([DeliveryStatus.ENTREGADA.value, DeliveryStatus.CANCELADA.value]),
    ),
    TripType.PICKUP.value: TripKind(
        PICKUPS, 'Recolección', 'REC', PickupStatus, PickupStatus.EN_TRANSITO.value,
        frozenset([PickupStatus.COMPLETADA.value, PickupStatus.CANCELADA.value]),
    ),
}


def _kind(trip_type: str) -> TripKind:
    try:
        return TRIP_KINDS[trip_type]
    except KeyError:
        raise ValidationError(f"Tipo de viaje inválido: '{trip_type}'.")


class LogisticsService:
    """
    Servicio de logística.

    Responsabilidades:
    - CRUD de vehículos (placa única)
    - Entregas y recolecciones con folio, asignación de vehículo y estatus
    - Gastos por viaje y totales por vehículo
    """

    def __init__(self, store: DocumentStore, audit_service: AuditService = None):
        self.store = store
        self.vehicles = store.collection(VEHICLES)
        self.expenses = store.collection(LOGISTICS_EXPENSES)
        self.audit_service = audit_service

    # =========================================================================
    # VEHÍCULOS
    # =========================================================================

    def list_vehicles(self, status: str = None) -> List[Dict[str, Any]]:
        items = self.vehicles.where(status=status) if status else self.vehicles.list()
        return sorted(items, key=lambda v: v.get('name', '').lower())

    def get_vehicle(self, vehicle_id: str) -> Optional[Dict[str, Any]]:
        return self.vehicles.get(vehicle_id)

    def _ensure_unique_plate(self, plate: str, exclude_id: str = None) -> None:
        for vehicle in self.vehicles.where(plate=plate):
            if vehicle['id'] != exclude_id:
                raise ValidationError(f"Ya existe un vehículo con la placa {plate}.")

    @service_call('Alta de vehículo')
    def create_vehicle(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        vehicle = Vehicle.from_dict(values)
        self._ensure_unique_plate(vehicle.plate)
        vehicle_id = self.vehicles.add(vehicle.to_dict())
        logger.info("Vehículo registrado: %s (%s)", vehicle.name, vehicle.plate)
        return {'ok': True, 'id': vehicle_id, 'vehicle': self.vehicles.get(vehicle_id)}

    @service_call('Edición de vehículo')
    def update_vehicle(self, vehicle_id: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        current = self.vehicles.get(vehicle_id)
        if not current:
            raise NotFoundError('Vehículo', vehicle_id)
        merged = dict(current)
        merged.update(values)
        vehicle = Vehicle.from_dict(merged)
        self._ensure_unique_plate(vehicle.plate, exclude_id=vehicle_id)
        self.vehicles.update_fields(vehicle_id, vehicle.to_dict())
        return {'ok': True, 'id': vehicle_id, 'vehicle': self.vehicles.get(vehicle_id)}

    @service_call('Baja de vehículo')
    def delete_vehicle(self, vehicle_id: str, user: str = None) -> Dict[str, Any]:
        for kind in TRIP_KINDS.values():
            for trip in self.store.collection(kind.collection).where(vehicle_id=vehicle_id):
                if trip.get('status') not in kind.terminal:
                    raise ValidationError(
                        f"El vehículo está asignado a la {kind.label.lower()} {trip.get('folio')}."
                    )
        if self.vehicles.remove(vehicle_id) is None:
            raise NotFoundError('Vehículo', vehicle_id)
        return {'ok': True, 'id': vehicle_id}

    # =========================================================================
    # VIAJES (ENTREGAS / RECOLECCIONES)
    # =========================================================================

    def list_trips(self, trip_type: str, status: str = None) -> List[Dict[str, Any]]:
        kind = _kind(trip_type)
        repo = self.store.collection(kind.collection)
        items = repo.where(status=status) if status else repo.list()
        date_key = 'delivery_date' if trip_type == TripType.DELIVERY.value else 'scheduled_date'
        return sorted(items, key=lambda t: t.get(date_key, ''), reverse=True)

    @service_call('Alta de viaje')
    def create_trip(self, trip_type: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """
        Crea una entrega (ENT-xxxxxx) o recolección (REC-xxxxxx).

        El vehículo, si se indica, debe estar Disponible.
        """
        kind = _kind(trip_type)
        entity = (Delivery if trip_type == TripType.DELIVERY.value else Pickup).from_dict(values)

        def create(tx: Transaction) -> Dict[str, Any]:
            if entity.vehicle_id:
                vehicle = tx.get(VEHICLES, entity.vehicle_id)
                if not vehicle:
                    raise NotFoundError('Vehículo', entity.vehicle_id)
                if vehicle.get('status') != VehicleStatus.DISPONIBLE.value:
                    raise InvalidTransitionError(
                        f"El vehículo {vehicle.get('name')} no está disponible ({vehicle.get('status')})."
                    )
            trip_id = new_document_id()
            doc = asdict(entity)
            doc['folio'] = folio(kind.prefix, trip_id)
            doc['created_at'] = now_iso()
            tx.set(kind.collection, trip_id, doc)
            doc['id'] = trip_id
            return doc

        trip = self.store.run_transaction(create)
        return {'ok': True, 'id': trip['id'], 'folio': trip['folio'], 'trip': trip}

    @service_call('Baja de viaje')
    def delete_trip(self, trip_type: str, trip_id: str, user: str = None) -> Dict[str, Any]:
        kind = _kind(trip_type)

        def remove(tx: Transaction) -> None:
            trip = tx.get(kind.collection, trip_id)
            if not trip:
                raise NotFoundError(kind.label, trip_id)
            if trip.get('status') == kind.in_transit:
                self._release_vehicle(tx, trip.get('vehicle_id'))
            tx.delete(kind.collection, trip_id)

        self.store.run_transaction(remove)
        return {'ok': True, 'id': trip_id}

    @staticmethod
    def _release_vehicle(tx: Transaction, vehicle_id: str) -> None:
        if not vehicle_id:
            return
        vehicle = tx.get(VEHICLES, vehicle_id)
        if vehicle and vehicle.get('status') == VehicleStatus.EN_RUTA.value:
            tx.update(VEHICLES, vehicle_id, {'status': VehicleStatus.DISPONIBLE.value})

    @service_call('Asignación de vehículo')
    def assign_vehicle(self, trip_type: str, trip_id: str, vehicle_id: str, user: str = None) -> Dict[str, Any]:
        """
        Asigna un vehículo Disponible (o el mismo que ya tiene) a un viaje.
        Si el viaje ya está en camino el nuevo vehículo pasa a En Ruta y el
        anterior queda Disponible.
        """
        kind = _kind(trip_type)

        def assign(tx: Transaction) -> Dict[str, Any]:
            trip = tx.get(kind.collection, trip_id)
            if not trip:
                raise NotFoundError(kind.label, trip_id)
            if trip.get('status') in kind.terminal:
                raise InvalidTransitionError(
                    f"La {kind.label.lower()} ya está {trip.get('status')}; no se puede reasignar."
                )
            vehicle = tx.get(VEHICLES, vehicle_id)
            if not vehicle:
                raise NotFoundError('Vehículo', vehicle_id)
            current = trip.get('vehicle_id') or ''
            if current == vehicle_id:
                return trip
            if vehicle.get('status') != VehicleStatus.DISPONIBLE.value:
                raise InvalidTransitionError(
                    f"El vehículo {vehicle.get('name')} no está disponible ({vehicle.get('status')})."
                )
            if trip.get('status') == kind.in_transit:
                self._release_vehicle(tx, current)
                tx.update(VEHICLES, vehicle_id, {'status': VehicleStatus.EN_RUTA.value})
            tx.update(kind.collection, trip_id, {'vehicle_id': vehicle_id})
            trip['vehicle_id'] = vehicle_id
            return trip

        trip = self.store.run_transaction(assign)
        return {'ok': True, 'id': trip_id, 'vehicle_id': trip['vehicle_id']}

    @service_call('Cambio de estatus de viaje')
    def update_trip_status(self, trip_type: str, trip_id: str, new_status: str, user: str = None) -> Dict[str, Any]:
        """
        Cambia el estatus de una entrega o recolección.

        Una recolección Completada ligada a una compra marca la compra con
        logistics_status 'Recibido'.
        """
        kind = _kind(trip_type)
        try:
            status = kind.statuses(new_status).value
        except ValueError:
            allowed = ', '.join(s.value for s in kind.statuses)
            raise ValidationError(f"Estatus inválido: '{new_status}'. Valores permitidos: {allowed}.")

        def change(tx: Transaction) -> Dict[str, Any]:
            trip = tx.get(kind.collection, trip_id)
            if not trip:
                raise NotFoundError(kind.label, trip_id)
            old_status = trip.get('status')
            if old_status in kind.terminal and status != old_status:
                raise InvalidTransitionError(
                    f"La {kind.label.lower()} ya está {old_status}; no puede cambiar de estatus."
                )
            tx.update(kind.collection, trip_id, {'status': status, 'status_updated_at': now_iso()})

            vehicle_id = trip.get('vehicle_id')
            if status == kind.in_transit and vehicle_id:
                tx.update(VEHICLES, vehicle_id, {'status': VehicleStatus.EN_RUTA.value})
            elif status in kind.terminal:
                self._release_vehicle(tx, vehicle_id)

            purchase_id = trip.get('purchase_order_id')
            if status == PickupStatus.COMPLETADA.value and purchase_id:
                if tx.get(PURCHASES, purchase_id):
                    tx.update(PURCHASES, purchase_id, {
                        'logistics_status': LOGISTICS_RECEIVED,
                        'logistics_status_at': now_iso(),
                    })
                else:
                    logger.warning("Recolección %s ligada a compra inexistente %s", trip_id, purchase_id)
            return {'trip': trip, 'old_status': old_status}

        result = self.store.run_transaction(change)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_LOGISTICA, user,
                f"{kind.label} {result['trip'].get('folio')}: {result['old_status']} → {status}",
                trip_id, {'from': result['old_status'], 'to': status}
            )
        return {'ok': True, 'id': trip_id, 'status': status}

    # =========================================================================
    # GASTOS
    # =========================================================================

    def list_expenses(self, trip_id: str = None) -> List[Dict[str, Any]]:
        items = self.expenses.where(trip_id=trip_id) if trip_id else self.expenses.list()
        return sorted(items, key=lambda e: e.get('date', ''), reverse=True)

    @service_call('Registro de gasto logístico')
    def add_expense(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """Registra un gasto ligado a un viaje y al vehículo de ese viaje."""
        expense = LogisticsExpense.from_dict(values)
        kind = _kind(expense.trip_type)
        trip = self.store.collection(kind.collection).get(expense.trip_id)
        if not trip:
            raise NotFoundError(kind.label, expense.trip_id)

        doc = asdict(expense)
        doc['vehicle_id'] = trip.get('vehicle_id') or ''
        doc['trip_folio'] = trip.get('folio', '')
        doc['created_at'] = now_iso()
        expense_id = self.expenses.add(doc)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_LOGISTICA, user,
                f"Gasto {expense.concept} de {fmt_money(expense.amount)} en {doc['trip_folio']}",
                expense_id
            )
        return {'ok': True, 'id': expense_id, 'expense': self.expenses.get(expense_id)}

    @service_call('Baja de gasto logístico')
    def delete_expense(self, expense_id: str, user: str = None) -> Dict[str, Any]:
        if self.expenses.remove(expense_id) is None:
            raise NotFoundError('Gasto', expense_id)
        return {'ok': True, 'id': expense_id}

    def expenses_by_vehicle(self) -> List[Dict[str, Any]]:
        """
        Totales de gasto por vehículo (los gastos sin vehículo se agrupan
        bajo 'Sin asignar').

        Returns:
            [{vehicle_id, vehicle_name, total, count, by_concept}] de mayor a menor
        """
        groups: Dict[str, Dict[str, Any]] = {}
        for expense in self.expenses.list():
            vehicle_id = expense.get('vehicle_id') or ''
            group = groups.setdefault(vehicle_id, {
                'total': 0.0, 'count': 0, 'by_concept': defaultdict(float)
            })
            amount = float(expense.get('amount', 0) or 0)
            group['total'] += amount
            group['count'] += 1
            group['by_concept'][expense.get('concept', '')] += amount

        report = []
        for vehicle_id, group in groups.items():
            vehicle = self.vehicles.get(vehicle_id) if vehicle_id else None
            report.append({
                'vehicle_id': vehicle_id,
                'vehicle_name': vehicle.get('name') if vehicle else 'Sin asignar',
                'total': money(group['total']),
                'count': group['count'],
                'by_concept': {k: money(v) for k, v in group['by_concept'].items()},
            })
        return sorted(report, key=lambda r: r['total'], reverse=True)
