# run_from_json.py

import sys

from loguru import logger
from pydantic import ValidationError

from question_bank.config import configure_logging, get_settings
from question_bank.exam_document import create_exam_document
from question_bank.file_saver import save_as
from question_bank.schemas import BankData

# 定义输入和输出文件名
INPUT_JSON_FILE = 'data/question_bank.json'
OUTPUT_DOCX_FILE = 'exercises_from_json.docx'


def main(input_path: str = INPUT_JSON_FILE, output_name: str = OUTPUT_DOCX_FILE) -> int:
    """
    从本地题库 JSON 文件生成 Word 试卷的主函数。
    """
    settings = get_settings()
    logger.info(f"📄 正在从 '{input_path}' 读取数据...")

    # 1. 加载本地JSON数据
    try:
        with open(input_path, 'r', encoding='utf-8') as f:
            data = BankData.model_validate_json(f.read())
    except (FileNotFoundError, ValidationError) as e:
        logger.error(f"错误：无法读取或解析JSON文件 -> {e}")
        return 1

    # 2. 调用核心引擎创建文档
    questions = data.questions or []
    logger.info(f"⚙️ 正在导出 {len(questions)} 道题目...")
    docx_bytes = create_exam_document(questions, settings.DOCUMENT_TITLE)

    # 3. 保存文档
    save_as(docx_bytes, output_name, settings.EXPORT_DIR)
    logger.success(f"🎉 成功将文档保存为 '{output_name}'！")
    return 0


if __name__ == "__main__":
    configure_logging(get_settings().LOG_LEVEL)
    sys.exit(main(*sys.argv[1:3]))
