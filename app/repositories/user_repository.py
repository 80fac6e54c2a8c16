from app.models.user import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def update_identity_number(self, user_id: str, identity_number: str) -> bool:
        # Update only; profiles are created by the auth service
        return await self.update_by_id(user_id, identity_number=identity_number)
