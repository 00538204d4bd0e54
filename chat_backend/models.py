from tortoise import Model, fields

from chat_backend.config import DEFAULT_PICTURE


class User(Model):
    id = fields.IntField(primary_key=True)
    name = fields.CharField(max_length=255)
    email = fields.CharField(max_length=255, unique=True)
    # bcrypt hash, never the plaintext
    password = fields.CharField(max_length=255)
    picture = fields.CharField(max_length=1024, default=DEFAULT_PICTURE)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "users"


class Chat(Model):
    id = fields.IntField(primary_key=True)
    chat_name = fields.CharField(max_length=255, null=True)
    is_group_chat = fields.BooleanField(default=False)
    # "<low user id>:<high user id>" for direct chats, null for groups
    direct_key = fields.CharField(max_length=64, unique=True, null=True)
    group_admin = fields.ForeignKeyField(
        "models.User", related_name="administered_chats", to_field="id", null=True
    )
    # id of the newest message; messages already hold the FK to chats
    latest_message_id = fields.IntField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "chats"


class ChatParticipant(Model):
    id = fields.IntField(primary_key=True)
    chat = fields.ForeignKeyField("models.Chat", related_name="participants", to_field="id")
    user = fields.ForeignKeyField("models.User", related_name="chat_memberships", to_field="id")
    joined_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "chat_participants"
        unique_together = (("chat", "user"),)


class Message(Model):
    id = fields.IntField(primary_key=True)
    sender = fields.ForeignKeyField("models.User", related_name="sent_messages", to_field="id")
    chat = fields.ForeignKeyField("models.Chat", related_name="messages", to_field="id")
    content = fields.TextField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "messages"
