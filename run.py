# run.py
import uvicorn

from ss14_admin.core.config import PORT, HOST

if __name__ == "__main__":
    print("===========================================================")
    print(" SS14 ADMIN STARTING...")
    print(f" Dashboard URL: http://{HOST}:{PORT}")
    print("===========================================================")

    # "ss14_admin:create_app" refers to the create_app factory in ss14_admin/__init__.py
    uvicorn.run(
        "ss14_admin:create_app",
        host=HOST,
        port=PORT,
        reload=True,
        factory=True
    )
