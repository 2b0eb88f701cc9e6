import logging
from datetime import datetime, timedelta, timezone

from bson import ObjectId

import notifications
import users
from conftest import ADMIN_EMAIL, ADMIN_PASSWORD


def login(client, email="jane@example.com", password="s3cret-pass"):
    return client.post("/api/user/login", json={"email": email, "password": password}).json()


def test_register_and_login(client, db, user):
    stored = db["user"].find_one({"_id": ObjectId(user["id"])})
    assert stored["password"] != "s3cret-pass"
    assert stored["cartData"] == {}

    body = login(client)
    assert body["success"] is True
    assert body["token"]


def test_register_rejections(client, user):
    def register(**payload):
        data = {"name": "Sam", "email": "sam@example.com", "password": "long-enough"}
        data.update(payload)
        return client.post("/api/user/register", json=data).json()

    assert register(email="jane@example.com")["message"] == "User already exists"
    assert register(email="not-an-email")["message"] == "Please enter a valid email"
    assert register(password="short")["message"] == "Please enter a strong password"
    assert register(phone="12")["message"] == "Please enter a valid phone number"


def test_duplicate_phone(client, register):
    register(phone="+91 98765 43210")
    body = client.post(
        "/api/user/register",
        json={"name": "Sam", "email": "sam@example.com", "password": "long-enough", "phone": "+919876543210"},
    ).json()
    assert body == {"success": False, "message": "Phone number already registered"}


def test_login_failures(client, db, user):
    assert login(client, email="nobody@example.com")["message"] == "User doesn't exists"
    assert login(client, password="wrong-pass")["message"] == "Invalid credentials"

    db["user"].update_one({"_id": ObjectId(user["id"])}, {"$set": {"isBlocked": True}})
    assert login(client) == {"success": False, "message": "Your account has been blocked by admin"}


def test_admin_login(client):
    body = client.post("/api/user/admin", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}).json()
    assert body["success"] is True

    body = client.post("/api/user/admin", json={"email": ADMIN_EMAIL, "password": "nope"}).json()
    assert body == {"success": False, "message": "Invalid credentials"}


def test_password_reset_flow(client, db, user, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, "send_otp_email", lambda email, otp: sent.append((email, otp)) or True)

    body = client.post("/api/user/forgot-password", json={"email": "jane@example.com"}).json()
    assert body["success"] is True
    otp = db["user"].find_one({"email": "jane@example.com"})["resetOTP"]
    assert sent == [("jane@example.com", otp)]
    assert len(otp) == 6

    body = client.post("/api/user/reset-password",
                       json={"email": "jane@example.com", "otp": otp, "newPassword": "brand-new-pass"}).json()
    assert body == {"success": False, "message": "OTP not verified"}

    wrong = "111111" if otp != "111111" else "222222"
    body = client.post("/api/user/verify-otp", json={"email": "jane@example.com", "otp": wrong}).json()
    assert body == {"success": False, "message": "Invalid OTP"}

    body = client.post("/api/user/verify-otp", json={"email": "jane@example.com", "otp": otp}).json()
    assert body["success"] is True

    body = client.post("/api/user/reset-password",
                       json={"email": "jane@example.com", "otp": otp, "newPassword": "brand-new-pass"}).json()
    assert body["success"] is True

    stored = db["user"].find_one({"email": "jane@example.com"})
    assert "resetOTP" not in stored
    assert login(client, password="brand-new-pass")["success"] is True
    assert login(client)["success"] is False


def test_forgot_password_succeeds_without_mail_delivery(client, db, user):
    body = client.post("/api/user/forgot-password", json={"email": "jane@example.com"}).json()
    assert body["success"] is True
    assert db["user"].find_one({"email": "jane@example.com"})["resetOTP"]


def test_expired_reset_otp(client, db, user):
    client.post("/api/user/forgot-password", json={"email": "jane@example.com"})
    db["user"].update_one(
        {"email": "jane@example.com"}, {"$set": {"resetOTPExpiry": datetime.now(timezone.utc) - timedelta(minutes=1)}}
    )
    otp = db["user"].find_one({"email": "jane@example.com"})["resetOTP"]
    body = client.post("/api/user/verify-otp", json={"email": "jane@example.com", "otp": otp}).json()
    assert body == {"success": False, "message": "OTP has expired"}


def test_phone_login(client, db, register):
    register(phone="+919876543210")

    body = client.post("/api/user/send-phone-otp", json={"phone": "+91 98765 43210"}).json()
    assert body["success"] is True
    otp = db["user"].find_one({"phone": "+919876543210"})["phoneOTP"]

    body = client.post("/api/user/verify-phone-otp", json={"phone": "+919876543210", "otp": otp}).json()
    assert body["success"] is True
    assert body["token"]
    assert "phoneOTP" not in db["user"].find_one({"phone": "+919876543210"})


def test_phone_otp_unknown_number(client):
    body = client.post("/api/user/send-phone-otp", json={"phone": "+919999999999"}).json()
    assert body == {"success": False, "message": "Phone number not registered. Please sign up first."}


def test_profile_and_loyalty(client, db, user):
    db["order"].insert_many([
        {"userId": user["id"], "amount": 700, "date": 1_700_000_000_000,
         "items": [{"name": "Wool Coat", "category": "Women"}]},
        {"userId": user["id"], "amount": 500, "date": 1_700_100_000_000, "items": []},
    ])
    client.post("/api/user/update-profile", json={"style": "casual", "email": "ignored@example.com"},
                headers=user["headers"])

    body = client.post("/api/user/profile", headers=user["headers"]).json()

    assert body["success"] is True
    assert "password" not in body["user"]
    assert body["profile"] == {"style": "casual"}
    assert body["loyalty"]["tier"] == "Silver"
    assert body["loyalty"]["points"] == 120
    assert [o["pointsRequired"] for o in body["loyalty"]["redeemableOffers"]] == []
    assert len(body["purchaseHistory"]) == 2
    assert body["browsingHistory"][1]["name"] == "Wool Coat"


def test_admin_user_management(client, db, user, admin_headers):
    users = client.get("/api/user/list", headers=admin_headers).json()["users"]
    assert [u["email"] for u in users] == ["jane@example.com"]
    assert "password" not in users[0]

    body = client.put(f"/api/user/toggle-block/{user['id']}", json={"isBlocked": True}, headers=admin_headers).json()
    assert body["message"] == "User blocked successfully"
    assert login(client)["success"] is False

    client.put(f"/api/user/toggle-block/{user['id']}", json={"isBlocked": False}, headers=admin_headers)
    body = client.put(f"/api/user/change-password/{user['id']}", json={"newPassword": "reset-by-admin"},
                      headers=admin_headers).json()
    assert body["success"] is True
    assert login(client, password="reset-by-admin")["success"] is True

    body = client.put(f"/api/user/update/{user['id']}", json={"name": "Janet"}, headers=admin_headers).json()
    assert body["user"]["name"] == "Janet"

    details = client.get(f"/api/user/details/{user['id']}", headers=admin_headers).json()
    assert details["totalOrders"] == 0

    body = client.delete(f"/api/user/delete/{user['id']}", headers=admin_headers).json()
    assert body["success"] is True
    assert db["user"].count_documents({}) == 0


def test_admin_routes_reject_user_tokens(client, user):
    body = client.get("/api/user/list", headers=user["headers"]).json()
    assert body == {"success": False, "message": "Not Authorized Login Again"}


def test_phone_otp_stays_out_of_info_logs(client, db, register, caplog, monkeypatch):
    register(phone="+919876543210")
    monkeypatch.setattr(users, "generate_otp", lambda: "424242")
    caplog.set_level(logging.INFO)

    client.post("/api/user/send-phone-otp", json={"phone": "+919876543210"})

    assert db["user"].find_one({"phone": "+919876543210"})["phoneOTP"] == "424242"
    assert "Phone OTP issued for +919876543210" in caplog.text
    assert "424242" not in caplog.text
