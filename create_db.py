from storefront import config
from storefront.db import Base, make_engine
# Import the models before create_all:
import storefront.models  # noqa

engine = make_engine(config.DATABASE_URL)
Base.metadata.create_all(bind=engine)
print("DB created at:", engine.url)
