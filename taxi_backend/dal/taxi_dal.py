# taxi_backend\dal\taxi_dal.py
# Taxi Data Access Layer: Handles CRUD operations for passengers, ride requests and their passenger links.
# Multi-step writes (request + links) run inside a single transaction.

import sqlite3
import os
import logging

from taxi_backend.logic.dates import local_timestamp
from taxi_backend.logic.text_repair import repair_record

logger = logging.getLogger("TaxiDAL")

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'schema.sql')

PASSENGER_FIELDS = ['name', 'address', 'neighborhood', 'city', 'phone', 'cost_center', 'shift', 'area']
REQUEST_FIELDS = ['date', 'requester', 'origin', 'destination', 'time', 'car_number', 'cost_center']
REQUEST_STATUSES = ('pending', 'completed', 'cancelled')
VALID_AREAS = ('Produção', 'Warehouse', 'RCB', 'SAR')
DEFAULT_AREA = 'RCB'


class TaxiDAL:
    """Data Access Layer for passengers and taxi requests"""
    def __init__(self, db_path):
        self.db_path = db_path
        self.is_open = False

    # --- Lifecycle ---

    def open(self):
        """Creates the database file and tables if needed"""
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        try:
            with open(SCHEMA_PATH, 'r', encoding='utf-8') as f:
                conn.executescript(f.read())

            # Databases created before the area tag existed
            columns = [r[1] for r in conn.execute("PRAGMA table_info(passengers)").fetchall()]
            if 'area' not in columns:
                logger.info("Adding column 'area' to passengers...")
                conn.execute(f"ALTER TABLE passengers ADD COLUMN area TEXT DEFAULT '{DEFAULT_AREA}'")
            conn.commit()
        finally:
            conn.close()

        self.is_open = True
        logger.info(f"Database ready at {self.db_path}")
        return self

    def close(self):
        self.is_open = False
        logger.info("Database gateway closed.")

    def _connect(self):
        if not self.is_open:
            raise RuntimeError("TaxiDAL is not open")
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    # --- Passengers ---

    def list_passengers(self):
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM passengers ORDER BY name").fetchall()
            return [dict(r) for r in rows]
        finally:
            conn.close()

    def get_passenger(self, passenger_id):
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM passengers WHERE id = ?", (passenger_id,)).fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    def create_passenger(self, passenger):
        conn = self._connect()
        try:
            with conn:
                record = self._insert_passenger(conn, passenger)
            return record
        finally:
            conn.close()

    def create_passengers(self, passengers):
        """Inserts a batch of passengers in one transaction"""
        conn = self._connect()
        try:
            with conn:
                created = [self._insert_passenger(conn, p) for p in passengers]
            logger.info(f"Successfully inserted {len(created)} rows into 'passengers' table.")
            return created
        finally:
            conn.close()

    def _insert_passenger(self, conn, passenger):
        values = self._passenger_values(passenger)
        created_at = local_timestamp()
        cur = conn.execute(
            'INSERT INTO passengers (name, address, neighborhood, city, phone, cost_center, shift, area, created_at) '
            'VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)',
            [values[f] for f in PASSENGER_FIELDS] + [created_at]
        )
        return {"id": cur.lastrowid, **values, "created_at": created_at}

    def update_passenger(self, passenger_id, passenger):
        """Updates the passenger; the stored area is kept when none is given"""
        values = self._passenger_values(passenger, default_area=False)
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    'UPDATE passengers SET name = ?, address = ?, neighborhood = ?, city = ?, phone = ?, '
                    'cost_center = ?, shift = ?, area = COALESCE(?, area) WHERE id = ?',
                    [values[f] for f in PASSENGER_FIELDS] + [passenger_id]
                )
            if cur.rowcount == 0:
                return None
        finally:
            conn.close()
        return self.get_passenger(passenger_id)

    def delete_passenger(self, passenger_id):
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute("DELETE FROM passengers WHERE id = ?", (passenger_id,))
            return {"deleted": cur.rowcount}
        finally:
            conn.close()

    @staticmethod
    def _passenger_values(passenger, default_area=True):
        values = repair_record({f: passenger.get(f) for f in PASSENGER_FIELDS})
        if isinstance(values['name'], str):
            values['name'] = values['name'].strip()
        if not values['area']:
            values['area'] = DEFAULT_AREA if default_area else None
        return values

    # --- Taxi requests ---

    def list_requests(self, filters=None):
        """
        Returns every request with its passengers resolved.
        The join yields one row per (request, passenger) pair; rows are grouped per request here.
        """
        where_clauses = []
        params = []
        filters = filters or {}

        status = filters.get('status')
        if status and status != 'all':
            where_clauses.append("tr.status = ?")
            params.append(status)
        if filters.get('dateFrom'):
            where_clauses.append("tr.date >= ?")
            params.append(filters['dateFrom'])
        if filters.get('dateTo'):
            where_clauses.append("tr.date <= ?")
            params.append(filters['dateTo'])

        where_str = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

        query = f"""
            SELECT
                tr.*,
                rp.id AS link_id,
                rp.passenger_id AS link_passenger_id,
                p.name AS p_name,
                p.address AS p_address,
                p.neighborhood AS p_neighborhood,
                p.city AS p_city,
                p.phone AS p_phone,
                p.cost_center AS p_cost_center,
                p.shift AS p_shift,
                p.area AS p_area
            FROM taxi_requests tr
            LEFT JOIN request_passengers rp ON tr.id = rp.request_id
            LEFT JOIN passengers p ON rp.passenger_id = p.id
            {where_str}
            ORDER BY tr.created_at DESC, tr.id DESC, rp.id ASC
        """

        conn = self._connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        requests = {}
        for r in rows:
            request = requests.get(r['id'])
            if request is None:
                request = {
                    "id": r['id'],
                    "date": r['date'],
                    "requester": r['requester'],
                    "origin": r['origin'],
                    "destination": r['destination'],
                    "time": r['time'],
                    "car_number": r['car_number'],
                    "cost_center": r['cost_center'],
                    "status": r['status'],
                    "created_at": r['created_at'],
                    "passengerIds": [],
                    "passengers": [],
                    "passengersDetails": []
                }
                requests[r['id']] = request

            if r['link_id'] is None:
                continue

            # A dangling link (passenger deleted) still yields an entry, with empty fields
            detail = {
                "id": r['link_passenger_id'],
                "name": r['p_name'] or '',
                "address": r['p_address'] or '',
                "neighborhood": r['p_neighborhood'] or '',
                "city": r['p_city'] or '',
                "phone": r['p_phone'] or '',
                "cost_center": r['p_cost_center'] or '',
                "shift": r['p_shift'] or '',
                "area": r['p_area'] or ''
            }
            request['passengerIds'].append(r['link_passenger_id'])
            request['passengers'].append(detail['name'])
            request['passengersDetails'].append(detail)

        return list(requests.values())

    def create_request(self, request):
        values = repair_record({f: request.get(f) for f in REQUEST_FIELDS})
        passenger_ids = request.get('passengerIds') or request.get('passenger_ids') or []
        created_at = local_timestamp()

        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    'INSERT INTO taxi_requests (date, requester, origin, destination, time, car_number, cost_center, created_at) '
                    'VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
                    [values[f] for f in REQUEST_FIELDS] + [created_at]
                )
                request_id = cur.lastrowid
                conn.executemany(
                    'INSERT INTO request_passengers (request_id, passenger_id) VALUES (?, ?)',
                    [(request_id, pid) for pid in passenger_ids]
                )
        finally:
            conn.close()

        logger.info(f"Request {request_id} created with {len(passenger_ids)} passengers")
        return {
            "id": request_id,
            **values,
            "status": "pending",
            "passengerIds": list(passenger_ids),
            "created_at": created_at
        }

    def update_request_status(self, request_id, status):
        if status not in REQUEST_STATUSES:
            raise ValueError(f"Status inválido '{status}'. Use um dos seguintes: {', '.join(REQUEST_STATUSES)}")
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute("UPDATE taxi_requests SET status = ? WHERE id = ?", (status, request_id))
            return {"id": request_id, "status": status, "updated": cur.rowcount}
        finally:
            conn.close()

    def delete_request(self, request_id):
        """Removes the request's links and then the request itself, atomically"""
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM request_passengers WHERE request_id = ?", (request_id,))
                cur = conn.execute("DELETE FROM taxi_requests WHERE id = ?", (request_id,))
            return {"deleted": cur.rowcount}
        finally:
            conn.close()

    def get_stats(self):
        """Counts for the dashboard; cancelled requests are reported separately, not dropped"""
        conn = self._connect()
        try:
            total_passengers = conn.execute("SELECT COUNT(*) FROM passengers").fetchone()[0]
            rows = conn.execute("SELECT status, COUNT(*) FROM taxi_requests GROUP BY status").fetchall()
        finally:
            conn.close()

        by_status = {status: 0 for status in REQUEST_STATUSES}
        for status, count in rows:
            by_status[status] = count

        return {
            "totalPassengers": total_passengers,
            "totalRequests": sum(by_status.values()),
            "pendingRequests": by_status['pending'],
            "completedRequests": by_status['completed'],
            "cancelledRequests": by_status['cancelled']
        }
