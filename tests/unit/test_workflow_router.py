import pytest


def _orden_row(fase="comercial", estatus="borrador"):
    return {
        "id_orden_pedido": 42,
        "consecutivo": "OP-0042",
        "fase": fase,
        "estatus": estatus,
        "fecha_creacion": None,
        "fecha_modificacion": None,
        "id_cliente": 1,
        "id_proyecto": None,
        "id_clase_orden": None,
        "id_tipo_pago": None,
        "id_metodo_despacho": None,
        "created_by": None,
        "observaciones_orden": None,
    }


class TestWorkflowRouter:
    """Tests para los endpoints de avance de fase."""

    def test_avanzar_requiere_sesion(self, db_client):
        response = db_client.post("/workflow/ordenes/42/avanzar")
        assert response.status_code == 401

    def test_avanzar_exitoso(self, client_comercial, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row("comercial"))
        mock_db_conn.set_fetchrow_result(_orden_row("inventarios", "abierta"))

        response = client_comercial.post("/workflow/ordenes/42/avanzar")

        assert response.status_code == 200
        data = response.json()
        assert data["orden"]["fase"] == "inventarios"
        assert data["orden"]["estatus"] == "abierta"
        assert data["mensaje"] == "La orden ha avanzado a la etapa de Inventarios"

    def test_avanzar_orden_inexistente(self, client_comercial, mock_db_conn):
        response = client_comercial.post("/workflow/ordenes/999/avanzar")
        assert response.status_code == 404

    def test_avanzar_rol_ajeno_403(self, client_facturacion, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row("comercial"))

        response = client_facturacion.post("/workflow/ordenes/42/avanzar")

        assert response.status_code == 403
        assert "Acceso denegado" in response.json()["detail"]
        # Solo se leyó la orden
        assert len(mock_db_conn.calls('fetchrow')) == 1

    def test_avanzar_en_financiera_409(self, client_admin, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row("financiera"))

        response = client_admin.post("/workflow/ordenes/42/avanzar")

        assert response.status_code == 409

    def test_avanzar_falla_bd_503(self, client_comercial, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row("comercial"))
        mock_db_conn.fail_on('fetchrow', ConnectionError("timeout"), pattern="UPDATE ordenpedido")

        response = client_comercial.post("/workflow/ordenes/42/avanzar")

        assert response.status_code == 503
        assert "intente de nuevo" in response.json()["detail"]

    def test_acciones_para_el_dueno(self, client_facturacion, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row("facturacion", "abierta"))

        response = client_facturacion.get("/workflow/ordenes/42/acciones")

        assert response.status_code == 200
        data = response.json()
        assert data["fase_actual"] == "facturacion"
        assert data["siguiente_fase"] == "financiera"
        assert data["siguiente_fase_label"] == "Financiera"
        assert data["puede_editar"] is True
        assert data["puede_avanzar"] is True

    def test_acciones_en_etapa_final(self, client_admin, mock_db_conn):
        """En financiera se puede editar pero no hay botón de avanzar."""
        mock_db_conn.set_fetchrow_result(_orden_row("financiera", "abierta"))

        data = client_admin.get("/workflow/ordenes/42/acciones").json()

        assert data["siguiente_fase"] is None
        assert data["puede_editar"] is True
        assert data["puede_avanzar"] is False

    def test_acciones_rol_ajeno(self, client_comercial, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row("produccion", "abierta"))

        data = client_comercial.get("/workflow/ordenes/42/acciones").json()

        assert data["puede_editar"] is False
        assert data["puede_avanzar"] is False


class TestOrdenesRouter:
    """Tests para la consulta de órdenes."""

    def test_listar_con_filtros(self, client_comercial, mock_db_conn):
        mock_db_conn.set_fetch_result([_orden_row("logistica", "abierta")])

        response = client_comercial.get("/ordenes?fase=logistica&estatus=abierta&limit=10")

        assert response.status_code == 200
        assert [o["fase"] for o in response.json()] == ["logistica"]
        query, params = mock_db_conn.calls('fetch')[0][1:]
        assert "fase = $1" in query and "estatus = $2" in query
        assert params == ("logistica", "abierta", 10, 0)

    def test_listar_fase_invalida_422(self, client_comercial):
        response = client_comercial.get("/ordenes?fase=bodega")
        assert response.status_code == 422

    def test_detalle_404(self, client_comercial):
        response = client_comercial.get("/ordenes/5")
        assert response.status_code == 404

    def test_detalle(self, client_comercial, mock_db_conn):
        mock_db_conn.set_fetchrow_result(_orden_row())
        response = client_comercial.get("/ordenes/42")
        assert response.status_code == 200
        assert response.json()["consecutivo"] == "OP-0042"
