"""
七牛云对象存储后端
每个集合一个对象，备份也是独立对象；下载走私有空间签名链接
"""
import os
from typing import List, Optional, Tuple

import qiniu
import requests
from qiniu import Auth, BucketManager

from core.blob_store import BlobStore
from core.config import cfg
from core.errors import PersistenceError
from core.log import get_logger

logger = get_logger(__name__)


def get_qiniu_config() -> Tuple[str, str, str, str, str]:
    """获取七牛配置：ak, sk, bucket, domain, prefix"""
    ak = os.environ.get("QINIU_AK") or cfg.get("qiniu.access_key", "")
    sk = os.environ.get("QINIU_SK") or cfg.get("qiniu.secret_key", "")
    bucket = os.environ.get("QINIU_BUCKET") or cfg.get("qiniu.bucket", "")
    domain = os.environ.get("QINIU_DOMAIN") or cfg.get("qiniu.domain", "")
    prefix = cfg.get("qiniu.prefix", "site-data/")
    return ak, sk, bucket, domain, prefix


class QiniuBlobStore(BlobStore):
    kind = "qiniu"

    def __init__(self, ak: str = "", sk: str = "", bucket: str = "", domain: str = "",
                 prefix: Optional[str] = None, timeout: float = 10):
        c_ak, c_sk, c_bucket, c_domain, c_prefix = get_qiniu_config()
        self.bucket = bucket or c_bucket
        self.domain = (domain or c_domain).rstrip("/")
        self.prefix = c_prefix if prefix is None else prefix
        self.timeout = timeout
        if not all([ak or c_ak, sk or c_sk, self.bucket, self.domain]):
            raise PersistenceError("七牛云未配置，请设置 QINIU_AK/QINIU_SK/QINIU_BUCKET/QINIU_DOMAIN")
        self.auth = Auth(ak or c_ak, sk or c_sk)
        self.bucket_manager = BucketManager(self.auth)

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def read_text(self, name: str) -> Optional[str]:
        url = self.auth.private_download_url(f"{self.domain}/{self._key(name)}", expires=300)
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise PersistenceError(f"download failed: {e}", blob=name) from e
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise PersistenceError(f"download failed: status={response.status_code}", blob=name)
        response.encoding = "utf-8"
        return response.text

    def write_text(self, name: str, text: str) -> None:
        key = self._key(name)
        # 指定 key 的上传凭证允许覆盖同名对象
        token = self.auth.upload_token(self.bucket, key, 3600)
        try:
            ret, info = qiniu.put_data(token, key, text.encode("utf-8"))
        except Exception as e:
            raise PersistenceError(f"upload failed: {e}", blob=name) from e
        status = getattr(info, "status_code", None)
        if status != 200:
            raise PersistenceError(f"upload failed: status={status}, info={info}", blob=name)
        logger.debug("[Qiniu] 上传成功 | key=%s | hash=%s", key, (ret or {}).get("hash"))

    def list_names(self, prefix: str = "") -> List[str]:
        names: List[str] = []
        marker = None
        full_prefix = self._key(prefix)
        while True:
            ret, eof, info = self.bucket_manager.list(self.bucket, prefix=full_prefix, marker=marker, limit=1000)
            if ret is None:
                raise PersistenceError(f"list failed: {info}", blob=prefix)
            for item in ret.get("items", []):
                names.append(item["key"][len(self.prefix):])
            marker = ret.get("marker")
            if eof or not marker:
                break
        return sorted(names)

    def delete(self, name: str) -> None:
        ret, info = self.bucket_manager.delete(self.bucket, self._key(name))
        status = getattr(info, "status_code", None)
        # 612: 对象不存在
        if status not in (200, 612):
            raise PersistenceError(f"delete failed: status={status}", blob=name)
