"""
Script para crear el esquema (enums, tablas, índices) y sembrar el catálogo de permisos.
Ejecutar: python -m scripts.init_schema
"""
import asyncio
import logging
import asyncpg
from core.config import settings

logger = logging.getLogger("InitSchema")

# Catálogos con permisos de lectura/gestión: (clave, nombre)
CATALOGOS = [
    ("cliente", "Clientes"),
    ("proyecto", "Proyectos"),
    ("claseorden", "Clases de Orden"),
    ("operador", "Operadores"),
    ("plan", "Planes"),
    ("apn", "APN"),
    ("transportadora", "Transportadoras"),
    ("metododespacho", "Métodos de Despacho"),
    ("tipopago", "Tipos de Pago"),
]

SQL_COMMANDS = [
    # 1. Enums
    """
    DO $$ BEGIN
        CREATE TYPE app_role AS ENUM (
            'admin', 'comercial', 'inventarios', 'produccion', 'logistica', 'facturacion', 'financiera'
        );
    EXCEPTION WHEN duplicate_object THEN NULL; END $$;
    """,
    """
    DO $$ BEGIN
        CREATE TYPE fase_orden_enum AS ENUM (
            'comercial', 'inventarios', 'produccion', 'logistica', 'facturacion', 'financiera'
        );
    EXCEPTION WHEN duplicate_object THEN NULL; END $$;
    """,
    """
    DO $$ BEGIN
        CREATE TYPE estatus_orden_enum AS ENUM (
            'borrador', 'abierta', 'enviada', 'facturada', 'cerrada', 'anulada'
        );
    EXCEPTION WHEN duplicate_object THEN NULL; END $$;
    """,

    # 2. Perfiles (user_id = id de Supabase Auth)
    """
    CREATE TABLE IF NOT EXISTS profiles (
        user_id UUID PRIMARY KEY REFERENCES auth.users(id) ON DELETE CASCADE,
        username TEXT UNIQUE,
        nombre TEXT,
        role app_role NOT NULL DEFAULT 'comercial',
        created_at TIMESTAMPTZ DEFAULT now()
    );
    """,

    # 3. Órdenes de pedido
    """
    CREATE TABLE IF NOT EXISTS ordenpedido (
        id_orden_pedido BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        consecutivo TEXT,
        fase fase_orden_enum NOT NULL DEFAULT 'comercial',
        estatus estatus_orden_enum NOT NULL DEFAULT 'borrador',
        fecha_creacion TIMESTAMPTZ DEFAULT now(),
        fecha_modificacion TIMESTAMPTZ,
        id_cliente BIGINT NOT NULL,
        id_proyecto BIGINT,
        id_clase_orden BIGINT,
        id_tipo_pago BIGINT,
        id_metodo_despacho BIGINT,
        created_by UUID REFERENCES profiles(user_id),
        observaciones_orden TEXT
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_ordenpedido_fase_estatus
    ON ordenpedido(fase, estatus);
    """,

    # 4. RBAC
    """
    CREATE TABLE IF NOT EXISTS permission (
        perm_code TEXT PRIMARY KEY,
        category TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMPTZ DEFAULT now()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS role_permissions (
        role app_role NOT NULL,
        perm_code TEXT NOT NULL REFERENCES permission(perm_code) ON DELETE CASCADE,
        allowed BOOLEAN NOT NULL DEFAULT false,
        updated_at TIMESTAMPTZ DEFAULT now(),
        PRIMARY KEY (role, perm_code)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS rbac_event (
        id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
        actor UUID NOT NULL,
        role app_role NOT NULL,
        perm_code TEXT NOT NULL,
        allowed_before BOOLEAN NOT NULL,
        allowed_after BOOLEAN NOT NULL,
        created_at TIMESTAMPTZ DEFAULT now()
    );
    """,
]


async def init_schema():
    """Crea el esquema y siembra permisos catalogo.<clave>.read / .manage"""
    conn = await asyncpg.connect(settings.DB_URL_ASYNC)
    try:
        logger.info("Creando esquema...")
        for i, sql in enumerate(SQL_COMMANDS, 1):
            await conn.execute(sql)
            logger.info(f"  Sentencia {i}/{len(SQL_COMMANDS)} aplicada")

        permisos = []
        for clave, nombre in CATALOGOS:
            permisos.append((f"catalogo.{clave}.read", "Catálogos", f"Consultar {nombre}"))
            permisos.append((f"catalogo.{clave}.manage", "Catálogos", f"Crear, editar y eliminar {nombre}"))

        await conn.executemany(
            """INSERT INTO permission (perm_code, category, description)
               VALUES ($1, $2, $3)
               ON CONFLICT (perm_code) DO NOTHING""",
            permisos
        )
        logger.info(f"Catálogo de permisos sembrado ({len(permisos)} códigos)")
    finally:
        await conn.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    asyncio.run(init_schema())
