# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── agro_erp/        <- Paquete Python
#       ├── main.py      <- create_app()
#       ├── services/
#       └── repositories/
#
# La configuración se lee del entorno (variables AGRO_*, ver agro_erp/config.py).
# ==============================================================================

from agro_erp.main import create_app

app = create_app()

# ==============================================================================
# PUNTO DE ENTRADA
# ==============================================================================
# Para desarrollo local:
#   python wsgi.py
# ==============================================================================

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
