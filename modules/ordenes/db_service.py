# modules/ordenes/db_service.py
"""
Capa de Acceso a Datos para Órdenes de Pedido.
Todas las queries SQL puras reciben conn como primer parametro.
"""
from typing import Dict, List, Optional
from datetime import datetime
from uuid import UUID
import logging

logger = logging.getLogger("Ordenes.DBService")

ORDEN_COLUMNS = """
    id_orden_pedido, consecutivo, fase, estatus, fecha_creacion, fecha_modificacion,
    id_cliente, id_proyecto, id_clase_orden, id_tipo_pago, id_metodo_despacho,
    created_by, observaciones_orden
"""


class OrdenesDBService:
    """Capa de Acceso a Datos para la tabla ordenpedido."""

    async def fetch_orden(self, conn, id_orden: int) -> Optional[dict]:
        """Obtiene una orden por su ID."""
        row = await conn.fetchrow(
            f"SELECT {ORDEN_COLUMNS} FROM ordenpedido WHERE id_orden_pedido = $1",
            id_orden
        )
        return dict(row) if row else None

    async def fetch_ordenes(
        self,
        conn,
        fase: Optional[str] = None,
        estatus: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[dict]:
        """Lista órdenes filtrando opcionalmente por fase y estatus (más recientes primero)."""
        filtros = []
        params = []
        if fase:
            params.append(fase)
            filtros.append(f"fase = ${len(params)}")
        if estatus:
            params.append(estatus)
            filtros.append(f"estatus = ${len(params)}")

        where = f"WHERE {' AND '.join(filtros)}" if filtros else ""
        params.extend([limit, offset])

        rows = await conn.fetch(
            f"""SELECT {ORDEN_COLUMNS} FROM ordenpedido
                {where}
                ORDER BY fecha_creacion DESC NULLS LAST, id_orden_pedido DESC
                LIMIT ${len(params) - 1} OFFSET ${len(params)}""",
            *params
        )
        return [dict(r) for r in rows]

    async def update_fase(
        self,
        conn,
        id_orden: int,
        fase_actual: str,
        fase: str,
        estatus: str,
        fecha_modificacion: datetime
    ) -> Optional[dict]:
        """
        Persiste fase, estatus y fecha_modificacion solo si la orden sigue en `fase_actual`.
        Retorna la fila actualizada, o None si no existe o ya cambió de fase.
        """
        row = await conn.fetchrow(
            f"""UPDATE ordenpedido
                SET fase = $1, estatus = $2, fecha_modificacion = $3
                WHERE id_orden_pedido = $4 AND fase = $5
                RETURNING {ORDEN_COLUMNS}""",
            fase, estatus, fecha_modificacion, id_orden, fase_actual
        )
        return dict(row) if row else None

    async def insert_orden(
        self,
        conn,
        datos: Dict,
        created_by: UUID,
        fase: str,
        estatus: str
    ) -> dict:
        """Inserta una orden nueva y retorna la fila creada."""
        row = await conn.fetchrow(
            f"""INSERT INTO ordenpedido (
                    id_cliente, id_proyecto, id_clase_orden, id_tipo_pago, id_metodo_despacho,
                    observaciones_orden, fase, estatus, created_by
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {ORDEN_COLUMNS}""",
            datos.get("id_cliente"), datos.get("id_proyecto"), datos.get("id_clase_orden"),
            datos.get("id_tipo_pago"), datos.get("id_metodo_despacho"), datos.get("observaciones_orden"),
            fase, estatus, created_by
        )
        return dict(row)

    # Columnas de cabecera editables (previene SQL injection en el UPDATE dinamico)
    CABECERA_FIELDS = frozenset({
        "id_cliente", "id_proyecto", "id_clase_orden",
        "id_tipo_pago", "id_metodo_despacho", "observaciones_orden",
    })

    async def update_cabecera(
        self,
        conn,
        id_orden: int,
        fase_actual: str,
        fields: Dict,
        fecha_modificacion: datetime
    ) -> Optional[dict]:
        """
        Actualiza campos de cabecera y fecha_modificacion si la orden sigue en `fase_actual`.
        Retorna la fila actualizada o None.
        """
        invalid = set(fields) - self.CABECERA_FIELDS
        if invalid:
            raise ValueError(f"Campos no permitidos: {', '.join(sorted(invalid))}")

        columns = list(fields)
        assignments = [f"{col} = ${i}" for i, col in enumerate(columns, start=1)]
        n = len(columns)
        assignments.append(f"fecha_modificacion = ${n + 1}")
        row = await conn.fetchrow(
            f"""UPDATE ordenpedido
                SET {', '.join(assignments)}
                WHERE id_orden_pedido = ${n + 2} AND fase = ${n + 3}
                RETURNING {ORDEN_COLUMNS}""",
            *[fields[c] for c in columns], fecha_modificacion, id_orden, fase_actual
        )
        return dict(row) if row else None


def get_ordenes_db_service() -> OrdenesDBService:
    """Helper para inyeccion de dependencias."""
    return OrdenesDBService()
