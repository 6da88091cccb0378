"""
Simple script to run the TDMS API server.
"""
import uvicorn

from tdms.config import PORT, IS_DEVELOPMENT

if __name__ == "__main__":
    print("Starting TDMS API...")
    print(f"Access at: http://127.0.0.1:{PORT}")
    print("Press Ctrl+C to stop")
    print("-" * 40)

    uvicorn.run(
        "tdms.main:app",
        host="0.0.0.0",
        port=PORT,
        reload=IS_DEVELOPMENT
    )
