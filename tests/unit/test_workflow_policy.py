import pytest

from core.permissions import AppRole
from core.workflow.policy import (
    ORDEN_FASES,
    Estatus,
    Fase,
    es_estatus_terminal,
    es_fase_terminal,
    etiqueta_fase,
    puede_editar,
    rol_requerido,
    siguiente_fase,
)


class TestPoliticaFases:
    """Tests para la tabla de fases y el predicado de edición."""

    def test_flujo_lineal_completo(self):
        """Cada fase apunta a la siguiente del orden total y financiera es terminal."""
        for actual, siguiente in zip(ORDEN_FASES, ORDEN_FASES[1:]):
            assert siguiente_fase(actual) is siguiente
        assert siguiente_fase(Fase.FINANCIERA) is None

    def test_acepta_strings(self):
        assert siguiente_fase("comercial") is Fase.INVENTARIOS
        assert etiqueta_fase("produccion") == "Producción"

    def test_fase_desconocida_es_error(self):
        """Un valor fuera del enum no se trata como 'sin siguiente fase'."""
        with pytest.raises(ValueError):
            siguiente_fase("bodega")

    def test_rol_requerido_es_el_homonimo(self):
        for fase in ORDEN_FASES:
            assert rol_requerido(fase).value == fase.value

    def test_admin_puede_editar_en_toda_fase(self):
        for fase in ORDEN_FASES:
            assert puede_editar("admin", fase) is True

    def test_dueno_solo_en_su_fase(self):
        """Solo el rol dueño (o admin) edita; no hay permisos transitivos."""
        for rol in AppRole:
            if rol is AppRole.ADMIN:
                continue
            for fase in ORDEN_FASES:
                assert puede_editar(rol.value, fase) is (rol.value == fase.value)

    def test_sin_rol_no_edita(self):
        assert puede_editar(None, Fase.COMERCIAL) is False
        assert puede_editar("", Fase.COMERCIAL) is False

    def test_terminales(self):
        assert es_fase_terminal(Fase.FINANCIERA) is True
        assert es_fase_terminal(Fase.LOGISTICA) is False
        assert es_estatus_terminal(Estatus.CERRADA) is True
        assert es_estatus_terminal("anulada") is True
        assert es_estatus_terminal(Estatus.ABIERTA) is False

    def test_etiquetas(self):
        assert [etiqueta_fase(f) for f in ORDEN_FASES] == [
            "Comercial", "Inventarios", "Producción", "Logística", "Facturación", "Financiera"
        ]
